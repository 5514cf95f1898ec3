"""
backend_orchestrator.py — Parallel visual-tampering analysis across vision backends.

Architecture:

  Fan-out (parallel) — one request per configured model id, all carrying the
                       same structured prompt and the image. Each call has its
                       own timeout and fails on its own: a broken backend is
                       logged and dropped, the rest carry on.
  Merge              — per category, union the non-empty descriptions and the
                       ids of the backends that reported it.
  Signals            — one ledger Signal per merged category. Critical only
                       when the category is critical by nature AND two or more
                       backends independently reported it; a lone model's
                       claim is always downgraded to a warning.

If every backend fails (or none is configured) the report is simply empty —
the analysis continues on byte-level evidence alone.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field

from payproof.ai.vision_client import vision_client
from payproof.core.config import settings
from payproof.models.analysis import Finding, FindingSeverity
from payproof.services.evidence_ledger import Category, EvidenceLedger, Severity

logger = logging.getLogger(__name__)

DESCRIPTION_SEPARATOR = " | "
MIN_CORROBORATING_BACKENDS = 2

# Strings some models use instead of a JSON null.
_EMPTY_MARKERS = {"", "null", "none", "n/a", "na", "no", "no issues", "not found"}


# ── Category table ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CategoryRule:
    key: str
    label: str                  # used in finding messages
    critical_by_nature: bool
    critical_deduction: int
    warning_deduction: int
    consequence: str


CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule("clonedRegions", "Cloned/copied regions", True, 35, 18,
                 "This indicates copy-paste manipulation."),
    CategoryRule("lightingInconsistencies", "Lighting inconsistencies", True, 30, 15,
                 "Different parts of the image have inconsistent illumination."),
    CategoryRule("pixelManipulation", "Pixel-level manipulation", True, 40, 20,
                 "Text or numbers appear to have been altered."),
    CategoryRule("fontInconsistencies", "Font inconsistencies", False, 20, 12,
                 "Text rendering appears unnatural."),
    CategoryRule("colorAnomalies", "Color anomalies", False, 15, 8,
                 "Color distribution is inconsistent with authentic screenshots."),
    CategoryRule("artificialElements", "Possible artificial elements", False, 12, 6,
                 "Content may have been digitally inserted."),
)

CATEGORY_KEYS = tuple(rule.key for rule in CATEGORY_RULES)


# ── Prompt ────────────────────────────────────────────────────────────────────

ANALYSIS_PROMPT = """\
You are a forensic image analysis expert. Analyze this payment screenshot image for signs of manipulation or editing. Look for:

1. CLONED REGIONS: Areas that appear to be copied/pasted from other parts of the image
2. LIGHTING INCONSISTENCIES: Different areas with inconsistent shadows, highlights, or illumination that wouldn't occur naturally
3. PIXEL-LEVEL MANIPULATION: Text or numbers that show signs of editing (irregular edges, color fringing, misaligned pixels)
4. FONT INCONSISTENCIES: Text that uses different fonts, sizes, or rendering styles within what should be uniform UI elements
5. COLOR ANOMALIES: Unnatural color gradients, banding, or color shifts in supposedly uniform backgrounds
6. ARTIFICIAL ELEMENTS: Added overlays, digitally inserted content, or composite elements

Return your analysis in this EXACT JSON format (no markdown, no code blocks, just raw JSON):
{
  "clonedRegions": "description if found, or null",
  "lightingInconsistencies": "description if found, or null",
  "pixelManipulation": "description if found, or null",
  "fontInconsistencies": "description if found, or null",
  "colorAnomalies": "description if found, or null",
  "artificialElements": "description if found, or null"
}

If a category shows no issues, set it to null. Be specific about locations and what you observe. Only flag issues you're confident about."""


# ── Data classes ──────────────────────────────────────────────────────────────

@dataclass
class AIFinding:
    category: str
    description: str            # union of backend descriptions
    backends: list[str]         # backends that reported this category

    @property
    def corroborated(self) -> bool:
        return len(self.backends) >= MIN_CORROBORATING_BACKENDS


@dataclass
class AIReport:
    ai_findings: list[AIFinding] = field(default_factory=list)
    findings: list[Finding] = field(default_factory=list)
    deduction: int = 0
    high_confidence_critical: bool = False
    backends_queried: int = 0
    backends_succeeded: int = 0


# ── Parsing helpers ────────────────────────────────────────────────────────────

def _normalise(value) -> str | None:
    if value is None:
        return None
    text = " ".join(value.split())
    return None if text.lower().rstrip(".") in _EMPTY_MARKERS else text


def parse_backend_response(raw: str) -> dict[str, str | None] | None:
    """
    Parse one backend reply into {category: description-or-None}.

    Returns None when the reply is not a JSON object of the expected shape
    (any known key holding something other than a string or null).
    """
    m = re.search(r"\{[\s\S]*\}", raw or "")
    if not m:
        return None
    try:
        data = json.loads(m.group())
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None

    parsed: dict[str, str | None] = {}
    for key in CATEGORY_KEYS:
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            return None
        parsed[key] = _normalise(value)
    return parsed


def merge_backend_results(results: list[tuple[str, dict[str, str | None]]]) -> list[AIFinding]:
    """Union descriptions and reporting backends per category, in category order."""
    merged = []
    for key in CATEGORY_KEYS:
        descriptions: list[str] = []
        backends: list[str] = []
        for backend_id, parsed in results:
            description = parsed.get(key)
            if not description:
                continue
            if backend_id not in backends:
                backends.append(backend_id)
            if description not in descriptions:
                descriptions.append(description)
        if backends:
            merged.append(AIFinding(
                category=key,
                description=DESCRIPTION_SEPARATOR.join(descriptions),
                backends=backends,
            ))
    return merged


# ── Orchestrator ──────────────────────────────────────────────────────────────

class BackendOrchestrator:
    """
    Fans an image out to every configured vision backend and turns the merged
    answers into ledger Signals, findings and a confidence deduction.
    """

    def __init__(self, client=None, models: list[str] | None = None, timeout: float | None = None) -> None:
        self.client = client or vision_client
        self.models = list(models) if models is not None else settings.vision_models
        self.timeout = timeout if timeout is not None else settings.vision_timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.models) and getattr(self.client, "enabled", True)

    async def _query_backend(self, model: str, image_url: str) -> tuple[str, dict[str, str | None]] | None:
        try:
            raw = await asyncio.wait_for(
                self.client.analyze(model, ANALYSIS_PROMPT, image_url),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Vision backend %s timed out after %.1fs — excluded", model, self.timeout)
            return None
        except Exception as exc:
            logger.warning("Vision backend %s failed — excluded: %s", model, exc)
            return None

        parsed = parse_backend_response(raw)
        if parsed is None:
            logger.warning("Vision backend %s returned unparsable output — excluded: %.200r", model, raw)
            return None
        logger.info("Vision backend %s result: %s", model, parsed)
        return model, parsed

    async def collect(self, image_url: str) -> list[tuple[str, dict[str, str | None]]]:
        """Query every backend in parallel; failed backends are left out."""
        if not self.enabled:
            return []
        results = await asyncio.gather(*(self._query_backend(m, image_url) for m in self.models))
        return [r for r in results if r is not None]

    async def run(self, image_url: str, ledger: EvidenceLedger) -> AIReport:
        report = AIReport(backends_queried=len(self.models) if self.enabled else 0)
        if not self.enabled:
            logger.info("AI visual analysis skipped — no vision backend configured")
            return report

        results = await self.collect(image_url)
        report.backends_succeeded = len(results)
        if not results:
            logger.warning("All %d vision backends failed — continuing with byte-level evidence", len(self.models))
            return report

        report.ai_findings = merge_backend_results(results)
        rules = {rule.key: rule for rule in CATEGORY_RULES}
        for ai_finding in report.ai_findings:
            rule = rules[ai_finding.category]
            critical = rule.critical_by_nature and ai_finding.corroborated
            severity = Severity.CRITICAL if critical else Severity.WARNING

            ledger.add_evidence(Category.AI, ai_finding.category, severity)
            report.deduction += rule.critical_deduction if critical else rule.warning_deduction
            if critical:
                report.high_confidence_critical = True

            sources = len(ai_finding.backends)
            report.findings.append(Finding(
                severity=FindingSeverity(severity.value),
                message=(
                    f"{rule.label} detected by {sources} of {len(self.models)} AI models: "
                    f"{ai_finding.description.rstrip('.')}. {rule.consequence}"
                ),
            ))

        logger.info(
            "AI analysis merged: %d/%d backends ok, %d categories, deduction=%d, high_confidence=%s",
            report.backends_succeeded, len(self.models), len(report.ai_findings),
            report.deduction, report.high_confidence_critical,
        )
        return report


# Module-level singleton
backend_orchestrator = BackendOrchestrator()
