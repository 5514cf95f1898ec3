"""
analyze.py — Payment screenshot authenticity endpoint.

Routes:
  POST /api/v1/analyze-payment — forensic + AI verdict for one screenshot

HOW THE DATA FLOWS
──────────────────
1. The upload UI reads the file with FileReader.readAsDataURL() and posts
   {"image": "data:image/png;base64,...", "filename": "receipt.png"}.
2. payment_analyzer decodes the payload, runs the byte-level signature scan
   and fans the image out to every configured vision backend in parallel.
3. The verdict engine combines both evidence sources into one AnalysisResult.
4. An undecodable image still returns HTTP 200 with a synthetic
   "not authentic, confidence 0" result; only a missing image is an error.

TESTING YOUR CHANGES
─────────────────────
  pytest tests/test_analyze_route.py -v

  # Manual test:
  echo "{\"image\": \"data:image/png;base64,$(base64 -w0 receipt.png)\"}" > /tmp/body.json
  curl -X POST http://localhost:8000/api/v1/analyze-payment \\
    -H 'Content-Type: application/json' -d @/tmp/body.json

No authentication required.
"""

import logging

from fastapi import APIRouter, HTTPException

from payproof.models.analysis import AnalysisResult, AnalyzePaymentRequest
from payproof.services.payment_analyzer import analyze_payment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["analysis"])


@router.post(
    "/analyze-payment",
    response_model=AnalysisResult,
    response_model_exclude_none=True,
    status_code=200,
)
async def analyze_payment_screenshot(payload: AnalyzePaymentRequest):
    """
    Decide whether a payment screenshot is authentic or digitally altered.

    Returns authentic + confidence (0–100) + ordered findings + metadata summary.
    """
    if not payload.image or not payload.image.strip():
        logger.warning("analyze-payment called without an image (filename=%s)", payload.filename)
        raise HTTPException(status_code=500, detail="No image provided")

    return await analyze_payment(payload.image, payload.filename)
