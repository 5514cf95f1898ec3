"""
VisionClient — Async wrapper around the vision-capable model backends.

Two providers (set via VISION_PROVIDER):
  - gemini  (default): Google Generative AI SDK, image sent as inline data.
            Requires GEMINI_API_KEY.
  - gateway: OpenAI-compatible chat-completions gateway over httpx, image sent
            as an image_url data URL. Requires AI_GATEWAY_API_KEY.

Model identifiers are passed per call, so one client serves every backend the
orchestrator fans out to.

Runtime modes:
  - MOCK mode (AI_MOCK_MODE=true): returns a canned "nothing found" JSON
    response for every model. Use for local UI work without API keys.
  - REAL mode: actual API calls. Without a credential the client is disabled
    and the analysis runs on byte-level evidence only.
"""

import json
import logging
import os
from enum import Enum

import httpx

# Python 3.14 + protobuf native extension can fail when importing Gemini deps.
# Keep this as default-only so users can still override it explicitly.
os.environ.setdefault("PROTOCOL_BUFFERS_PYTHON_IMPLEMENTATION", "python")

import google.generativeai as genai

from payproof.core.config import settings

logger = logging.getLogger(__name__)


class VisionProvider(str, Enum):
    GEMINI = "gemini"
    GATEWAY = "gateway"


class VisionBackendError(RuntimeError):
    """A backend answered, but not with something usable."""


# Canned response for mock mode: every category clean.
_MOCK_RESPONSES: dict[str, str] = {
    "default": json.dumps({
        "clonedRegions": None,
        "lightingInconsistencies": None,
        "pixelManipulation": None,
        "fontInconsistencies": None,
        "colorAnomalies": None,
        "artificialElements": None,
    }),
}


def split_data_url(image_url: str) -> tuple[str, str]:
    """Split "data:<mime>;base64,<data>" into (mime, data)."""
    header, sep, data = image_url.partition(",")
    if not sep or not header.startswith("data:"):
        return "image/jpeg", image_url
    mime = header[len("data:"):].split(";", 1)[0] or "image/jpeg"
    return mime, data


class VisionClient:
    """
    Central vision-model interface for the analysis pipeline.

    Don't instantiate per-request; use the module-level `vision_client`
    singleton (tests build their own after patching settings).
    """

    def __init__(self) -> None:
        self.mock_mode = settings.ai_mock_mode

        try:
            self.provider = VisionProvider(settings.vision_provider.strip().lower())
        except ValueError:
            logger.warning("Unknown VISION_PROVIDER %r — using gemini", settings.vision_provider)
            self.provider = VisionProvider.GEMINI

        if self.provider is VisionProvider.GATEWAY:
            self.api_key = settings.ai_gateway_api_key
        else:
            self.api_key = settings.gemini_api_key

        self.enabled = self.mock_mode or bool(self.api_key)

        if self.mock_mode:
            logger.info("VisionClient initialised in MOCK mode")
        elif not self.enabled:
            key_name = "AI_GATEWAY_API_KEY" if self.provider is VisionProvider.GATEWAY else "GEMINI_API_KEY"
            logger.warning(
                "%s not set — AI visual analysis disabled. "
                "Verdicts will rely on byte-level forensic evidence only.",
                key_name,
            )
        else:
            if self.provider is VisionProvider.GEMINI:
                genai.configure(api_key=self.api_key)
            logger.info("VisionClient initialised in REAL mode (provider: %s)", self.provider.value)

    async def analyze(self, model: str, prompt: str, image_url: str) -> str:
        """
        Send `prompt` plus the image to `model` and return the raw text reply.

        Args:
            model:     Backend model identifier, e.g. "gemini-2.5-flash".
            prompt:    The structured analysis prompt.
            image_url: Data URL of the image ("data:image/png;base64,...").

        Raises:
            VisionBackendError: disabled client, non-success status, or empty reply.
            Exception: SDK / transport errors propagate to the caller.
        """
        if self.mock_mode:
            return _MOCK_RESPONSES["default"]
        if not self.enabled:
            raise VisionBackendError("Vision backends are not configured")

        if self.provider is VisionProvider.GATEWAY:
            return await self._analyze_via_gateway(model, prompt, image_url)
        return await self._analyze_via_gemini(model, prompt, image_url)

    async def _analyze_via_gemini(self, model: str, prompt: str, image_url: str) -> str:
        mime_type, image_b64 = split_data_url(image_url)
        try:
            gemini_model = genai.GenerativeModel(model)
            contents = [
                {"text": prompt},
                {"inline_data": {"mime_type": mime_type, "data": image_b64}},
            ]
            response = await gemini_model.generate_content_async(
                contents,
                generation_config={
                    "temperature": settings.vision_temperature,
                    "max_output_tokens": settings.vision_max_tokens,
                },
            )
            text = response.text
        except Exception as exc:
            logger.error("Gemini Vision API error (model=%s): %s", model, exc)
            raise

        if not text:
            raise VisionBackendError(f"No content in response from {model}")
        return text

    async def _analyze_via_gateway(self, model: str, prompt: str, image_url: str) -> str:
        async with httpx.AsyncClient(timeout=settings.vision_timeout_seconds) as client:
            try:
                response = await client.post(
                    settings.ai_gateway_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "model": model,
                        "messages": [
                            {
                                "role": "user",
                                "content": [
                                    {"type": "text", "text": prompt},
                                    {"type": "image_url", "image_url": {"url": image_url}},
                                ],
                            }
                        ],
                        "temperature": settings.vision_temperature,
                        "max_tokens": settings.vision_max_tokens,
                    },
                )
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as exc:
                logger.error(
                    "AI gateway error (model=%s): %s — %s",
                    model,
                    exc.response.status_code,
                    exc.response.text[:200],
                )
                raise VisionBackendError(f"{model} returned HTTP {exc.response.status_code}") from exc

        choices = data.get("choices") or [{}]
        content = (choices[0].get("message") or {}).get("content")
        if not content:
            raise VisionBackendError(f"No content in response from {model}")
        return content


# Module-level singleton: import and use this everywhere
vision_client = VisionClient()
