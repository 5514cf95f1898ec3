"""
Tests for ImageBuffer payload decoding and format detection.
"""

import base64

import pytest

from payproof.services.image_buffer import Format, ImageBuffer, ImageDecodeError, detect_format


class TestDetectFormat:

    def test_png(self):
        assert detect_format(b"\x89PNG\r\n\x1a\n") is Format.PNG

    def test_jpeg(self):
        assert detect_format(b"\xff\xd8\xff\xe0") is Format.JPEG

    @pytest.mark.parametrize("data", [b"", b"\xff", b"GIF89a", b"\x89PN"])
    def test_unknown(self, data):
        assert detect_format(data) is Format.UNKNOWN


class TestFromPayload:

    def test_data_url_kept_for_backends(self, png_bytes, data_url):
        url = data_url(png_bytes())
        buffer = ImageBuffer.from_payload(url)
        assert buffer.format is Format.PNG
        assert buffer.data == png_bytes()
        assert buffer.data_url == url

    def test_bare_base64_gets_data_url(self, jpeg_bytes):
        raw = jpeg_bytes()
        buffer = ImageBuffer.from_payload(base64.b64encode(raw).decode())
        assert buffer.format is Format.JPEG
        assert buffer.mime_type == "image/jpeg"
        assert buffer.data_url.startswith("data:image/jpeg;base64,")

    def test_line_wrapped_base64_accepted(self, png_bytes):
        encoded = base64.encodebytes(png_bytes()).decode()
        assert "\n" in encoded
        assert ImageBuffer.from_payload(encoded).data == png_bytes()

    @pytest.mark.parametrize("payload", [
        "",
        "   ",
        "data:image/png,not-base64",
        "data:image/png;base64,",
        "data:image/png;base64,@@@@",
        "abc",
    ])
    def test_undecodable(self, payload):
        with pytest.raises(ImageDecodeError):
            ImageBuffer.from_payload(payload)
