"""
payment_analyzer.py — One full analysis of a submitted payment screenshot.

Pipeline (request-scoped, nothing is shared between calls):

  1. Decode the payload into an ImageBuffer (data URL or bare base64).
  2. Signature scan over the raw bytes          → ledger + findings
  3. Parallel vision-backend fan-out            → ledger + findings
  4. Verdict engine over the finished ledger    → AnalysisResult

Findings are ordered scanner first, then AI findings in category order, so
identical bytes and identical backend answers give an identical result.

An undecodable payload or an unexpected error returns the synthetic
"analysis failed" result instead of raising. Cancellation still propagates.
"""

import logging

from payproof.ai.backend_orchestrator import BackendOrchestrator, backend_orchestrator
from payproof.models.analysis import AnalysisResult
from payproof.services.evidence_ledger import EvidenceLedger
from payproof.services.image_buffer import ImageBuffer, ImageDecodeError
from payproof.services.signature_scanner import scan_image
from payproof.services.verdict_engine import render_verdict

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 100


async def analyze_payment(
    image: str,
    filename: str | None = None,
    *,
    orchestrator: BackendOrchestrator | None = None,
) -> AnalysisResult:
    """
    Analyse one screenshot payload and return the final verdict.

    Args:
        image:        Data URL ("data:image/png;base64,...") or bare base64.
        filename:     Display name, logged only.
        orchestrator: Override the module-level backend orchestrator (tests).
    """
    orchestrator = orchestrator or backend_orchestrator
    logger.info("Analyzing payment screenshot: %s", filename or "<unnamed>")

    try:
        buffer = ImageBuffer.from_payload(image)
    except ImageDecodeError as exc:
        logger.warning("Could not decode image %s: %s", filename or "<unnamed>", exc)
        return AnalysisResult.analysis_failed()

    try:
        ledger = EvidenceLedger()
        scan = scan_image(buffer, ledger)
        ai = await orchestrator.run(buffer.data_url, ledger)

        result = render_verdict(
            ledger,
            BASE_CONFIDENCE - scan.deduction - ai.deduction,
            high_confidence_ai_critical=ai.high_confidence_critical,
            findings=scan.findings + ai.findings,
            software=scan.software_label,
            compression_anomalies=scan.compression_anomalies,
            metadata_inconsistencies=scan.metadata_inconsistencies,
        )
    except Exception:
        logger.exception("Analysis failed for %s", filename or "<unnamed>")
        return AnalysisResult.analysis_failed()

    logger.info(
        "Verdict for %s: authentic=%s confidence=%d risk=%d findings=%d",
        filename or "<unnamed>", result.authentic, result.confidence,
        ledger.risk_score, len(result.findings),
    )
    return result
