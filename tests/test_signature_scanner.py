"""
test_signature_scanner.py — Unit tests for the byte-level forensic scanner.

Run:
    pytest tests/test_signature_scanner.py -v
"""

from payproof.models.analysis import FindingSeverity
from payproof.services.evidence_ledger import Category, EvidenceLedger
from payproof.services.image_buffer import Format, ImageBuffer
from payproof.services.signature_scanner import (
    HEADER_SCAN_BYTES,
    count_soi_markers,
    detect_signatures,
    extract_header_tokens,
    has_exif_segment,
    jpeg_quality_settings,
    scan_image,
)

_PHOTOSHOP_XMP = b"<xmp:CreatorTool>Adobe Photoshop 2024</xmp:CreatorTool>"
_GIMP_SOFTWARE = b"Software: GIMP 2.10"
_SNAPSEED_SOFTWARE = b"Software: Snapseed"


def _scan(data: bytes):
    ledger = EvidenceLedger()
    report = scan_image(ImageBuffer.from_bytes(data), ledger)
    return report, ledger


# ── Byte-level helpers ────────────────────────────────────────────────────────

class TestHelpers:

    def test_exif_segment_found(self, jpeg_bytes):
        assert has_exif_segment(jpeg_bytes()) is True

    def test_exif_segment_missing(self, jpeg_bytes):
        assert has_exif_segment(jpeg_bytes(exif=False)) is False

    def test_exif_literal_at_wrong_offset_ignored(self):
        assert has_exif_segment(b"\xff\xd8\xff\xe1Exif\x00\x00") is False

    def test_count_soi_markers(self, jpeg_bytes):
        assert count_soi_markers(jpeg_bytes(extra_soi=2)) == 3

    def test_tokens_are_lowercased_and_collapsed(self):
        tokens = extract_header_tokens(b"\x00Adobe   PHOTOSHOP\x00ab\x00")
        assert tokens == ["adobe photoshop"]

    def test_short_runs_are_not_tokens(self):
        assert extract_header_tokens(b"\x00abc\x00xyz\x00") == []

    def test_tokens_limited_to_header_prefix(self):
        data = b"\x00" * (HEADER_SCAN_BYTES + 10) + b"Software: Photoshop"
        assert extract_header_tokens(data) == []

    def test_quality_settings_distinct_and_sorted(self):
        assert jpeg_quality_settings(["quality=95", "quality: 60", "quality=95"]) == [60, 95]


# ── Signature detection ───────────────────────────────────────────────────────

class TestDetectSignatures:

    def test_editor_in_metadata_context(self, jpeg_bytes):
        editors, apps = detect_signatures(jpeg_bytes(_PHOTOSHOP_XMP))
        assert editors == ["Photoshop"]
        assert apps == []

    def test_editor_without_metadata_context_ignored(self, jpeg_bytes):
        editors, apps = detect_signatures(jpeg_bytes(b"photoshop rocks"))
        assert editors == [] and apps == []

    def test_whole_word_only(self, jpeg_bytes):
        # "sketchy" must not match the Sketch signature
        editors, _ = detect_signatures(jpeg_bytes(b"Software: sketchy exporter"))
        assert editors == []

    def test_names_deduplicated(self, jpeg_bytes):
        editors, _ = detect_signatures(jpeg_bytes(_PHOTOSHOP_XMP, b"Software: Photoshop CC"))
        assert editors == ["Photoshop"]

    def test_mobile_app_table(self, jpeg_bytes):
        editors, apps = detect_signatures(jpeg_bytes(_SNAPSEED_SOFTWARE))
        assert editors == []
        assert apps == ["Snapseed"]


# ── scan_image ────────────────────────────────────────────────────────────────

class TestScanImage:

    def test_clean_jpeg_has_no_findings(self, jpeg_bytes):
        report, ledger = _scan(jpeg_bytes())
        assert report.format is Format.JPEG
        assert report.has_exif is True
        assert report.findings == []
        assert report.deduction == 0
        assert ledger.category_count == 0

    def test_clean_png_has_no_findings(self, png_bytes):
        report, ledger = _scan(png_bytes(b"Software\x00Screenshot"))
        assert report.format is Format.PNG
        assert report.findings == []
        assert ledger.risk_score == 0

    def test_missing_exif_on_jpeg(self, jpeg_bytes):
        report, ledger = _scan(jpeg_bytes(exif=False))
        assert report.deduction == 10
        assert report.metadata_inconsistencies is True
        assert ledger.warning_identifiers(Category.METADATA) == {"missing-exif"}
        assert report.findings[0].severity is FindingSeverity.WARNING

    def test_png_never_penalised_for_missing_exif(self, png_bytes):
        report, ledger = _scan(png_bytes())
        assert report.metadata_inconsistencies is False
        assert ledger.warning_count == 0

    def test_single_signature_is_warning(self, jpeg_bytes):
        report, ledger = _scan(jpeg_bytes(_PHOTOSHOP_XMP))
        assert report.software == ["Photoshop"]
        assert report.software_label == "Photoshop"
        assert report.deduction == 8
        assert report.editing_detected is False
        assert ledger.warning_identifiers(Category.METADATA) == {"editing-software"}
        assert ledger.critical_count == 0

    def test_two_editors_is_critical_metadata(self, jpeg_bytes):
        report, ledger = _scan(jpeg_bytes(_PHOTOSHOP_XMP, _GIMP_SOFTWARE))
        assert report.software_label == "Photoshop, GIMP"
        assert report.editing_detected is True
        assert report.deduction == 28
        assert ledger.critical_identifiers(Category.METADATA) == {"editing-software"}
        assert [f.severity for f in report.findings] == [FindingSeverity.CRITICAL]

    def test_editor_and_app_emit_two_critical_signals(self, jpeg_bytes):
        report, ledger = _scan(jpeg_bytes(_PHOTOSHOP_XMP, _SNAPSEED_SOFTWARE))
        assert report.deduction == 28
        assert ledger.critical_identifiers(Category.METADATA) == {"editing-software", "app-signature"}
        assert len(report.findings) == 2

    def test_two_soi_markers_tolerated(self, jpeg_bytes):
        report, ledger = _scan(jpeg_bytes(extra_soi=1))
        assert report.compression_anomalies is False
        assert ledger.category_count == 0

    def test_three_soi_markers_flag_recompression(self, jpeg_bytes):
        report, ledger = _scan(jpeg_bytes(extra_soi=2))
        assert report.compression_anomalies is True
        assert report.deduction == 15
        assert ledger.warning_identifiers(Category.COMPRESSION) == {"recompression"}

    def test_png_with_three_soi_markers_flags_recompression(self, png_bytes):
        report, ledger = _scan(png_bytes() + b"\xff\xd8\x00" * 3)
        assert report.format is Format.PNG
        assert report.compression_anomalies is True
        assert report.deduction == 15
        assert ledger.warning_identifiers(Category.COMPRESSION) == {"recompression"}

    def test_png_with_two_soi_markers_tolerated(self, png_bytes):
        report, ledger = _scan(png_bytes() + b"\xff\xd8\x00" * 2)
        assert report.compression_anomalies is False
        assert ledger.category_count == 0

    def test_unknown_format_with_three_soi_markers_flags_recompression(self):
        report, ledger = _scan(b"RIFF" + b"\x00" * 16 + b"\xff\xd8\x00" * 3)
        assert report.format is Format.UNKNOWN
        assert report.compression_anomalies is True
        assert ledger.warning_identifiers(Category.COMPRESSION) == {"recompression"}

    def test_stacked_compression_needs_jpeg_quality_check(self, png_bytes):
        report, ledger = _scan(png_bytes(b"quality=60", b"quality=95") + b"\xff\xd8\x00" * 3)
        assert ledger.critical_count == 0
        assert ledger.warning_identifiers(Category.COMPRESSION) == {"recompression"}

    def test_divergent_quality_is_critical(self, jpeg_bytes):
        report, ledger = _scan(jpeg_bytes(b"quality=60", b"quality=95"))
        assert report.compression_anomalies is True
        assert report.deduction == 25
        assert ledger.critical_identifiers(Category.COMPRESSION) == {"quality"}

    def test_repeated_quality_is_not_flagged(self, jpeg_bytes):
        report, ledger = _scan(jpeg_bytes(b"quality=90", b"quality=90"))
        assert report.compression_anomalies is False
        assert ledger.critical_count == 0

    def test_stacked_compression(self, jpeg_bytes):
        report, ledger = _scan(jpeg_bytes(b"quality=60", b"quality=95", extra_soi=2))
        assert report.deduction == 15 + 25 + 18
        assert ledger.critical_identifiers(Category.COMPRESSION) == {"quality", "stacked-compression"}
        assert ledger.warning_identifiers(Category.COMPRESSION) == {"recompression"}
        assert [f.severity for f in report.findings] == [
            FindingSeverity.WARNING, FindingSeverity.CRITICAL, FindingSeverity.CRITICAL,
        ]

    def test_png_editing_chunk(self, png_bytes):
        report, ledger = _scan(png_bytes(b"Software\x00Adobe Photoshop"))
        assert report.deduction == 10
        assert ledger.warning_identifiers(Category.FORMAT) == {"png-editing-chunk"}

    def test_png_with_device_provenance_not_flagged(self, png_bytes):
        report, ledger = _scan(png_bytes(b"Software\x00Adobe Photoshop", b"Model\x00Apple iPhone 15"))
        assert ledger.warning_identifiers(Category.FORMAT) == frozenset()

    def test_png_with_mobile_app_only_not_flagged(self, png_bytes):
        report, ledger = _scan(png_bytes(b"Software\x00Snapseed"))
        assert ledger.warning_identifiers(Category.FORMAT) == frozenset()
        assert report.deduction == 0

    def test_unknown_format_gets_no_format_checks(self):
        report, ledger = _scan(b"GIF89a" + b"\x00" * 32 + b"quality=10 quality=20")
        assert report.format is Format.UNKNOWN
        assert ledger.category_count == 0

    def test_malformed_bytes_never_raise(self):
        for data in (b"\xff", b"\xff\xd8", b"\x89PNG", bytes(range(256)) * 64):
            report, _ = _scan(data)
            assert report.deduction >= 0

    def test_every_critical_signal_has_critical_finding(self, jpeg_bytes):
        report, ledger = _scan(jpeg_bytes(_PHOTOSHOP_XMP, _GIMP_SOFTWARE, b"quality=60", b"quality=95"))
        critical_findings = [f for f in report.findings if f.severity is FindingSeverity.CRITICAL]
        assert len(critical_findings) >= ledger.critical_count
