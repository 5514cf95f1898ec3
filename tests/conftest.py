"""
pytest configuration and shared fixtures for the PayProof API tests.

Key concern: tests must not require a vision API key or network access.
We achieve this by:
  1. Setting AI_MOCK_MODE=true before anything imports payproof, so the
     module-level VisionClient returns canned "nothing found" answers.
  2. Building tiny synthetic PNG/JPEG byte strings in-process. The scanner
     only looks at magic bytes, markers and printable header runs, so these
     are enough to drive every check without fixture files on disk.

Unit tests that need specific backend answers build their own
BackendOrchestrator around a fake client (see test_backend_orchestrator.py).
"""

import base64
import os

import pytest
from httpx import ASGITransport, AsyncClient

# Set env vars BEFORE importing the app so Settings picks them up correctly
os.environ.setdefault("AI_MOCK_MODE", "true")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("VISION_PROVIDER", "gemini")


# ── Synthetic image builders ──────────────────────────────────────────────────

_PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
_PNG_IHDR = b"\x00\x00\x00\x0dIHDR\x00\x00\x01\x00\x00\x00\x02\x00\x08\x06\x00\x00\x00\x1f\x15\xc4\x89"
_PNG_IEND = b"\x00\x00\x00\x00IEND\xaeB`\x82"


def build_png(*text_chunks: bytes, padding: int = 64) -> bytes:
    """PNG signature, IHDR, one tEXt-like block per chunk, zero padding, IEND."""
    body = b"".join(b"\x00\x00\x00\x10tEXt" + chunk + b"\x00\x00\x00\x00" for chunk in text_chunks)
    return _PNG_SIGNATURE + _PNG_IHDR + body + b"\x00" * padding + _PNG_IEND


def build_jpeg(*comments: bytes, exif: bool = True, extra_soi: int = 0, padding: int = 64) -> bytes:
    """
    SOI, optional APP1/Exif segment, one COM segment per comment, zero padding,
    `extra_soi` additional start-of-image markers, then EOI.
    """
    data = b"\xff\xd8"
    if exif:
        data += b"\xff\xe1\x00\x10Exif\x00\x00" + b"\x00" * 8
    for comment in comments:
        data += b"\xff\xfe\x00\x20" + comment + b"\x00"
    data += b"\x00" * padding
    data += b"\xff\xd8\x00\x00" * extra_soi
    return data + b"\xff\xd9"


def to_data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


@pytest.fixture()
def png_bytes():
    """Factory: png_bytes(b"Software\\x00Adobe Photoshop", ...)."""
    return build_png


@pytest.fixture()
def jpeg_bytes():
    """Factory: jpeg_bytes(b"quality=60", exif=False, extra_soi=2)."""
    return build_jpeg


@pytest.fixture()
def data_url():
    """Factory: data_url(raw_bytes, mime="image/jpeg")."""
    return to_data_url


@pytest.fixture()
async def client():
    """
    HTTPX async test client wired to the FastAPI app.

    Usage:
        async def test_something(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    from payproof.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
