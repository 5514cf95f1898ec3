"""
Health check endpoint.

Used by:
  - Docker HEALTHCHECK instruction
  - Load balancers / uptime monitors
  - The upload UI, to check API connectivity

Returns liveness plus the vision-backend configuration so callers can tell
"API down" apart from "API up but running on byte-level evidence only".
"""

import logging

from fastapi import APIRouter
from pydantic import BaseModel

import payproof.ai.vision_client as vision_module
from payproof.core.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()

API_VERSION = "0.1.0"


class HealthResponse(BaseModel):
    status: str  # Always "ok" if the API process is alive
    version: str
    environment: str
    vision_provider: str
    vision_models: list[str]
    ai_enabled: bool  # False → verdicts use signature evidence only


@router.get("", response_model=HealthResponse, summary="API health check")
async def health_check() -> HealthResponse:
    """
    Returns the liveness status of the API and whether AI evidence is active.

    Always HTTP 200 while the process is alive; a missing vision credential
    is reported through `ai_enabled`, not as a failure.
    """
    client = vision_module.vision_client
    return HealthResponse(
        status="ok",
        version=API_VERSION,
        environment=settings.environment,
        vision_provider=client.provider.value,
        vision_models=settings.vision_models,
        ai_enabled=client.enabled,
    )
