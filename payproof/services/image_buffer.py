"""
image_buffer.py — Decoded image payload shared by every analysis stage.

The upload UI reads the file with FileReader.readAsDataURL(), so the payload
normally arrives as "data:image/png;base64,iVBORw0...". A bare base64 string
is accepted as well; in that case a data URL is rebuilt from the detected
format so the vision backends still get a self-describing image.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from enum import Enum

PNG_MAGIC = b"\x89PNG"
JPEG_SOI = b"\xff\xd8"


class ImageDecodeError(ValueError):
    """The submitted payload is not decodable as image bytes."""


class Format(str, Enum):
    PNG = "PNG"
    JPEG = "JPEG"
    UNKNOWN = "UNKNOWN"


_MIME_BY_FORMAT = {
    Format.PNG: "image/png",
    Format.JPEG: "image/jpeg",
    Format.UNKNOWN: "application/octet-stream",
}


def detect_format(data: bytes) -> Format:
    """Classify the buffer from its magic bytes."""
    if data[:4] == PNG_MAGIC:
        return Format.PNG
    if data[:2] == JPEG_SOI:
        return Format.JPEG
    return Format.UNKNOWN


@dataclass(frozen=True)
class ImageBuffer:
    data: bytes
    format: Format
    data_url: str

    @property
    def mime_type(self) -> str:
        return _MIME_BY_FORMAT[self.format]

    @classmethod
    def from_bytes(cls, data: bytes) -> "ImageBuffer":
        fmt = detect_format(data)
        encoded = base64.b64encode(data).decode("ascii")
        return cls(data=data, format=fmt, data_url=f"data:{_MIME_BY_FORMAT[fmt]};base64,{encoded}")

    @classmethod
    def from_payload(cls, payload: str) -> "ImageBuffer":
        """
        Decode a data URL (or bare base64 string) into an ImageBuffer.

        Raises:
            ImageDecodeError: payload is empty, not valid base64, or decodes
                              to zero bytes.
        """
        if not payload or not payload.strip():
            raise ImageDecodeError("Empty image payload")

        payload = payload.strip()
        is_data_url = payload.startswith("data:")
        if is_data_url:
            header, sep, encoded = payload.partition(",")
            if not sep or ";base64" not in header:
                raise ImageDecodeError("Data URL is not base64-encoded")
        else:
            encoded = payload

        encoded = "".join(encoded.split())
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ImageDecodeError(f"Invalid base64 image data: {exc}") from exc

        if not data:
            raise ImageDecodeError("Image payload decoded to zero bytes")

        if is_data_url:
            return cls(data=data, format=detect_format(data), data_url=f"{header},{encoded}")
        return cls.from_bytes(data)
