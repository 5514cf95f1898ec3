"""
evidence_ledger.py — Request-scoped accumulator for forensic signals.

Both the signature scanner and the backend orchestrator write Signals here;
the verdict engine reads the finished ledger once. Per-category counts are
set-based (re-adding an identifier does not double count) while the risk
score is additive per add_evidence() call.

USAGE
─────
    ledger = EvidenceLedger()
    ledger.add_evidence(Category.METADATA, "missing-exif", Severity.WARNING)
    ledger.add_evidence(Category.AI, "pixelManipulation", Severity.CRITICAL)
    ledger.risk_score        # → 31
    ledger.category_count    # → 2
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum


class Category(str, Enum):
    METADATA = "metadata"
    COMPRESSION = "compression"
    FORMAT = "format"
    AI = "ai"


class Severity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Signal:
    category: str
    severity: Severity
    identifier: str


# ── Risk weights (category × severity) ────────────────────────────────────────

_RISK_WEIGHTS = {
    "metadata":    {Severity.WARNING: 6,  Severity.CRITICAL: 14},
    "compression": {Severity.WARNING: 10, Severity.CRITICAL: 18},
    "format":      {Severity.WARNING: 8,  Severity.CRITICAL: 16},
    "ai":          {Severity.WARNING: 12, Severity.CRITICAL: 25},
}
_DEFAULT_RISK_WEIGHT = {Severity.WARNING: 5, Severity.CRITICAL: 10}


def _key(category: Category | str) -> str:
    return category.value if isinstance(category, Category) else str(category)


class EvidenceLedger:
    """Category → {warning ids, critical ids} plus a running risk score."""

    def __init__(self) -> None:
        self._warnings: dict[str, set[str]] = {}
        self._criticals: dict[str, set[str]] = {}
        self._signals: list[Signal] = []
        self._risk_score = 0
        self._lock = threading.Lock()

    def add_evidence(self, category: Category | str, identifier: str, severity: Severity | str) -> None:
        key = _key(category)
        severity = Severity(severity)
        weight = _RISK_WEIGHTS.get(key, _DEFAULT_RISK_WEIGHT)[severity]

        with self._lock:
            bucket = self._criticals if severity is Severity.CRITICAL else self._warnings
            bucket.setdefault(key, set()).add(identifier)
            self._signals.append(Signal(category=key, severity=severity, identifier=identifier))
            self._risk_score += weight

    # ── Read-only queries ─────────────────────────────────────────────────────

    @property
    def risk_score(self) -> int:
        return self._risk_score

    @property
    def signals(self) -> tuple[Signal, ...]:
        return tuple(self._signals)

    @property
    def critical_count(self) -> int:
        return sum(len(ids) for ids in self._criticals.values())

    @property
    def warning_count(self) -> int:
        return sum(len(ids) for ids in self._warnings.values())

    @property
    def category_count(self) -> int:
        """Distinct categories holding any evidence."""
        return len(set(self._warnings) | set(self._criticals))

    @property
    def critical_category_count(self) -> int:
        return len(self._criticals)

    @property
    def critical_categories(self) -> tuple[str, ...]:
        return tuple(self._criticals)

    @property
    def has_metadata_evidence(self) -> bool:
        key = Category.METADATA.value
        return key in self._warnings or key in self._criticals

    def critical_identifiers(self, category: Category | str) -> frozenset[str]:
        return frozenset(self._criticals.get(_key(category), ()))

    def warning_identifiers(self, category: Category | str) -> frozenset[str]:
        return frozenset(self._warnings.get(_key(category), ()))

    def has_critical(self, category: Category | str) -> bool:
        return _key(category) in self._criticals
