"""
verdict_engine.py — Final authenticity decision for one screenshot.

Pure function of the completed EvidenceLedger, the accumulated confidence and
the orchestrator's high-confidence-AI flag. Nothing here mutates the ledger,
so the same inputs always yield the same AnalysisResult.

The decision requires corroboration: no single weak signal (missing EXIF on
its own, one model's opinion, metadata naming an editor) may flip a verdict.
Metadata evidence never counts as corroboration for itself.

USAGE
─────
    from payproof.services.verdict_engine import render_verdict

    result = render_verdict(
        ledger, 100 - scan.deduction - ai.deduction,
        high_confidence_ai_critical=ai.high_confidence_critical,
        findings=scan.findings + ai.findings,
    )
    result.authentic        # → False
    result.confidence       # → 31
"""

from __future__ import annotations

from dataclasses import dataclass

from payproof.models.analysis import AnalysisMetadata, AnalysisResult, Finding, FindingSeverity
from payproof.services.evidence_ledger import Category, EvidenceLedger

# ── Thresholds ────────────────────────────────────────────────────────────────

EDITING_LIKELY_THRESHOLD = 72
DEFAULT_THRESHOLD = 60
WARNING_ONLY_FLOOR = 65          # max 35 points lost to uncorroborated warnings

SINGLE_CATEGORY_CRITICAL_RISK = 40
HIGH_CONFIDENCE_AI_RISK = 30
WARNING_PILEUP_COUNT = 3
WARNING_PILEUP_RISK = 50

NO_EVIDENCE_MESSAGE = (
    "No signs of manipulation detected through forensic or AI analysis. "
    "Image appears to be an original screenshot."
)


@dataclass(frozen=True)
class EvidenceSummary:
    """Snapshot of the ledger counts the decision rules look at."""

    critical_count: int
    warning_count: int
    category_count: int
    critical_category_count: int
    non_metadata_categories: int
    ai_critical: bool
    max_criticals_in_one_category: int
    risk_score: int

    @property
    def multi_category(self) -> bool:
        return self.category_count >= 2 and self.non_metadata_categories >= 1

    @classmethod
    def from_ledger(cls, ledger: EvidenceLedger) -> "EvidenceSummary":
        non_metadata = ledger.category_count - (1 if ledger.has_metadata_evidence else 0)
        return cls(
            critical_count=ledger.critical_count,
            warning_count=ledger.warning_count,
            category_count=ledger.category_count,
            critical_category_count=ledger.critical_category_count,
            non_metadata_categories=non_metadata,
            ai_critical=ledger.has_critical(Category.AI),
            max_criticals_in_one_category=max(
                (len(ledger.critical_identifiers(c)) for c in ledger.critical_categories), default=0
            ),
            risk_score=ledger.risk_score,
        )


# ── Pure decision functions ───────────────────────────────────────────────────

def is_editing_likely(summary: EvidenceSummary, high_confidence_ai_critical: bool = False) -> bool:
    """True when independent evidence sources agree the image was edited."""
    s = summary
    rules = (
        # critical evidence in two categories, not only metadata
        s.critical_category_count >= 2 and s.non_metadata_categories >= 1,
        # two criticals spread over corroborating categories
        s.critical_count >= 2 and s.multi_category,
        # AI critical backed by anything else
        s.ai_critical and (s.category_count >= 2 or s.warning_count >= 1),
        # one critical plus a pile of warnings across categories
        s.critical_count >= 1 and s.warning_count >= 2 and s.multi_category,
        # one category, but several distinct critical detectors in it
        (s.critical_category_count == 1
         and s.max_criticals_in_one_category >= 2
         and s.risk_score >= SINGLE_CATEGORY_CRITICAL_RISK),
        # two models independently agree on a critical-by-nature category
        high_confidence_ai_critical and s.risk_score >= HIGH_CONFIDENCE_AI_RISK,
        # many warnings across categories with a high combined weight
        (s.warning_count >= WARNING_PILEUP_COUNT
         and s.multi_category
         and s.risk_score >= WARNING_PILEUP_RISK
         and s.non_metadata_categories >= 1),
    )
    return any(rules)


def authenticity_threshold(editing_likely: bool) -> int:
    return EDITING_LIKELY_THRESHOLD if editing_likely else DEFAULT_THRESHOLD


def final_confidence(confidence: float, editing_likely: bool, critical_count: int) -> int:
    """Clamp to [0, 100]; warning-only images keep at least WARNING_ONLY_FLOOR."""
    value = max(0, min(100, round(confidence)))
    if not editing_likely and critical_count == 0:
        value = max(value, WARNING_ONLY_FLOOR)
    return value


def render_verdict(
    ledger: EvidenceLedger,
    confidence: float,
    *,
    high_confidence_ai_critical: bool = False,
    findings: list[Finding] | None = None,
    software: str | None = None,
    compression_anomalies: bool = False,
    metadata_inconsistencies: bool = False,
) -> AnalysisResult:
    """Apply the decision policy to a finished ledger and build the AnalysisResult."""
    summary = EvidenceSummary.from_ledger(ledger)
    editing_likely = is_editing_likely(summary, high_confidence_ai_critical)
    score = final_confidence(confidence, editing_likely, summary.critical_count)
    authentic = not editing_likely and score >= authenticity_threshold(editing_likely)

    findings = list(findings or [])
    if authentic and not findings:
        findings.append(Finding(severity=FindingSeverity.INFO, message=NO_EVIDENCE_MESSAGE))

    return AnalysisResult(
        authentic=authentic,
        confidence=score,
        findings=findings,
        metadata=AnalysisMetadata(
            software=software,
            editing_detected=editing_likely,
            compression_anomalies=compression_anomalies,
            metadata_inconsistencies=metadata_inconsistencies,
        ),
    )
