"""
signature_scanner.py — Byte-level forensic scan of the submitted screenshot.

Pure function of the image bytes: no network, no shared state. Malformed or
truncated buffers simply yield no matches; nothing in here raises.

Checks, in detection order
──────────────────────────
  1. EXIF presence (JPEG only) — APP1 marker followed by "Exif".
  2. Editing-software / mobile-app signatures in metadata-context header tokens.
  3. Recompression — more than two JPEG SOI markers anywhere in the buffer,
     whatever the detected format.
  4. Format-specific:
       PNG  — editing-tool text chunk with no device/screenshot provenance
       JPEG — two or more distinct "quality=NN" settings
  5. Stacked compression — recompression AND quality inconsistency together.

Header tokens
─────────────
Only a bounded prefix of the file is tokenised (8 KiB, or 16 KiB for the
format checks) and only printable-ASCII runs of 4+ bytes count as tokens.
Metadata lives at the front of PNG/JPEG files; everything after it is
compressed pixel data that routinely contains short runs that look like text.

USAGE
─────
    buffer = ImageBuffer.from_payload(data_url)
    ledger = EvidenceLedger()
    report = scan_image(buffer, ledger)
    report.deduction       # → confidence points to subtract
    report.findings        # → ordered Finding list
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from payproof.models.analysis import Finding, FindingSeverity
from payproof.services.evidence_ledger import Category, EvidenceLedger, Severity
from payproof.services.image_buffer import JPEG_SOI, Format, ImageBuffer

logger = logging.getLogger(__name__)

# ── Scan bounds ───────────────────────────────────────────────────────────────

HEADER_SCAN_BYTES = 8 * 1024
WIDE_HEADER_SCAN_BYTES = 16 * 1024
MIN_TOKEN_RUN = 4

APP1_MARKER = b"\xff\xe1"
EXIF_IDENTIFIER = b"Exif"
EXIF_IDENTIFIER_OFFSET = 4    # APP1 marker, 2-byte segment length, then "Exif"
MAX_LEGITIMATE_SOI = 2        # main image + one embedded thumbnail

# ── Confidence deductions ─────────────────────────────────────────────────────

MISSING_EXIF_DEDUCTION = 10
SINGLE_SIGNATURE_DEDUCTION = 8
MULTIPLE_SIGNATURE_DEDUCTION = 28
RECOMPRESSION_DEDUCTION = 15
PNG_EDITING_CHUNK_DEDUCTION = 10
QUALITY_INCONSISTENCY_DEDUCTION = 25
STACKED_COMPRESSION_DEDUCTION = 18

# ── Signature tables ──────────────────────────────────────────────────────────

EDITING_SOFTWARE: dict[str, tuple[str, ...]] = {
    "Photoshop": ("adobe photoshop", "photoshop"),
    "GIMP":      ("gimp",),
    "Canva":     ("canva",),
    "Pixlr":     ("pixlr",),
    "Paint.NET": ("paint.net",),
    "Affinity":  ("affinity photo", "affinity"),
    "Sketch":    ("sketch",),
}

MOBILE_APPS: dict[str, tuple[str, ...]] = {
    "Snapseed":  ("snapseed",),
    "Instagram": ("instagram",),
    "PicsArt":   ("picsart",),
    "Lightroom": ("lightroom",),
    "Facetune":  ("facetune",),
}

_PRINTABLE_RUN = re.compile(rb"[\x20-\x7e]{%d,}" % MIN_TOKEN_RUN)
_WHITESPACE = re.compile(r"\s+")
_METADATA_CONTEXT = re.compile(r"software|application|producer|creator|generator|rendered|modified|app")
_DEVICE_PROVENANCE = re.compile(r"iphone|ios|ipad|apple|screen capture|screenshot")
_QUALITY_SETTING = re.compile(r"quality[:=]?\s*(\d{1,3})")


def _compile_table(table: dict[str, tuple[str, ...]]) -> dict[str, list[tuple[re.Pattern, bool]]]:
    """Whole-word pattern per signature, flagged when it spans several words."""
    return {
        name: [(re.compile(r"\b" + re.escape(p) + r"\b"), " " in p) for p in patterns]
        for name, patterns in table.items()
    }


_EDITING_PATTERNS = _compile_table(EDITING_SOFTWARE)
_APP_PATTERNS = _compile_table(MOBILE_APPS)


@dataclass
class ScanReport:
    format: Format
    has_exif: bool = False
    software: list[str] = field(default_factory=list)
    findings: list[Finding] = field(default_factory=list)
    deduction: int = 0
    # Provisional; the verdict engine makes the final call.
    editing_detected: bool = False
    compression_anomalies: bool = False
    metadata_inconsistencies: bool = False

    @property
    def software_label(self) -> str | None:
        return ", ".join(self.software) if self.software else None

    def flag(self, ledger: EvidenceLedger, category: Category, identifier: str,
             severity: Severity, deduction: int, message: str) -> None:
        ledger.add_evidence(category, identifier, severity)
        self.findings.append(Finding(severity=FindingSeverity(severity.value), message=message))
        self.deduction += deduction


# ── Byte-level helpers ────────────────────────────────────────────────────────

def has_exif_segment(data: bytes) -> bool:
    """True if an APP1 marker is followed by the "Exif" identifier."""
    pos = data.find(APP1_MARKER)
    while pos != -1:
        start = pos + EXIF_IDENTIFIER_OFFSET
        if data[start:start + len(EXIF_IDENTIFIER)] == EXIF_IDENTIFIER:
            return True
        pos = data.find(APP1_MARKER, pos + 1)
    return False


def count_soi_markers(data: bytes) -> int:
    """Count JPEG start-of-image markers anywhere in the buffer."""
    count = 0
    pos = data.find(JPEG_SOI)
    while pos != -1:
        count += 1
        pos = data.find(JPEG_SOI, pos + 1)
    return count


def extract_header_tokens(data: bytes, limit: int = HEADER_SCAN_BYTES) -> list[str]:
    """Lowercased, whitespace-collapsed printable runs from the first `limit` bytes."""
    tokens = []
    for run in _PRINTABLE_RUN.findall(data[:limit]):
        token = _WHITESPACE.sub(" ", run.decode("ascii").lower()).strip()
        if len(token) >= MIN_TOKEN_RUN:
            tokens.append(token)
    return tokens


def _match_table(tokens: list[str], table: dict[str, list[tuple[re.Pattern, bool]]]) -> list[str]:
    joined = " ".join(tokens)
    found = []
    for name, patterns in table.items():
        for pattern, multi_word in patterns:
            if any(pattern.search(t) for t in tokens) or (multi_word and pattern.search(joined)):
                found.append(name)
                break
    return found


def detect_signatures(data: bytes) -> tuple[list[str], list[str]]:
    """
    Match editing-tool and mobile-app signatures in metadata-context tokens.

    Returns (editing_tools, mobile_apps), each deduplicated in table order.
    """
    candidates = [t for t in extract_header_tokens(data) if _METADATA_CONTEXT.search(t)]
    if not candidates:
        return [], []
    return _match_table(candidates, _EDITING_PATTERNS), _match_table(candidates, _APP_PATTERNS)


def png_has_editing_chunk(wide_tokens: list[str]) -> bool:
    """Editing-tool token present and no device/screenshot provenance token."""
    patterns = [p for ps in _EDITING_PATTERNS.values() for p, _ in ps]
    has_editor = any(p.search(t) for t in wide_tokens for p in patterns)
    if not has_editor:
        return False
    return not any(_DEVICE_PROVENANCE.search(t) for t in wide_tokens)


def jpeg_quality_settings(wide_tokens: list[str]) -> list[int]:
    """Distinct numeric quality settings mentioned in the header, ascending."""
    return sorted({int(q) for t in wide_tokens for q in _QUALITY_SETTING.findall(t)})


# ── Scanner ───────────────────────────────────────────────────────────────────

def scan_image(buffer: ImageBuffer, ledger: EvidenceLedger) -> ScanReport:
    """Run every byte-level check on `buffer`, writing Signals into `ledger`."""
    data = buffer.data
    report = ScanReport(format=buffer.format)

    # 1. EXIF
    if buffer.format is Format.JPEG:
        report.has_exif = has_exif_segment(data)
        if not report.has_exif:
            report.metadata_inconsistencies = True
            report.flag(
                ledger, Category.METADATA, "missing-exif", Severity.WARNING, MISSING_EXIF_DEDUCTION,
                "No EXIF data found. Metadata may have been stripped, which is common with edited images.",
            )

    # 2. Editing software / app signatures
    editors, apps = detect_signatures(data)
    report.software = editors + apps
    if len(report.software) == 1:
        identifier = "editing-software" if editors else "app-signature"
        report.flag(
            ledger, Category.METADATA, identifier, Severity.WARNING, SINGLE_SIGNATURE_DEDUCTION,
            f"Editing software signature found in metadata: {report.software[0]}. "
            "This alone does not prove the screenshot was altered.",
        )
    elif len(report.software) > 1:
        report.editing_detected = True
        report.deduction += MULTIPLE_SIGNATURE_DEDUCTION
        if editors:
            report.flag(
                ledger, Category.METADATA, "editing-software", Severity.CRITICAL, 0,
                f"Editing software detected: {', '.join(editors)}. "
                "Image has been processed through editing applications.",
            )
        if apps:
            report.flag(
                ledger, Category.METADATA, "app-signature", Severity.CRITICAL, 0,
                f"Detected traces of editing apps: {', '.join(apps)}.",
            )

    # 3. Recompression
    recompressed = False
    soi_count = count_soi_markers(data)
    if soi_count > MAX_LEGITIMATE_SOI:
        recompressed = True
        report.compression_anomalies = True
        report.flag(
            ledger, Category.COMPRESSION, "recompression", Severity.WARNING, RECOMPRESSION_DEDUCTION,
            f"Multiple compression signatures detected ({soi_count} JPEG start markers). "
            "Image appears to have been saved multiple times.",
        )

    # 4. Format-specific
    wide_tokens = extract_header_tokens(data, WIDE_HEADER_SCAN_BYTES)
    if buffer.format is Format.PNG and png_has_editing_chunk(wide_tokens):
        report.flag(
            ledger, Category.FORMAT, "png-editing-chunk", Severity.WARNING, PNG_EDITING_CHUNK_DEDUCTION,
            "PNG metadata names an editing tool and carries no device screenshot provenance.",
        )

    quality_inconsistent = False
    if buffer.format is Format.JPEG:
        qualities = jpeg_quality_settings(wide_tokens)
        if len(qualities) >= 2:
            quality_inconsistent = True
            report.compression_anomalies = True
            report.flag(
                ledger, Category.COMPRESSION, "quality", Severity.CRITICAL, QUALITY_INCONSISTENCY_DEDUCTION,
                f"JPEG quality settings are inconsistent ({', '.join(map(str, qualities))}), "
                "indicating the image was re-encoded after editing.",
            )

    # 5. Corroborated compression evidence (JPEG only, as the quality check is)
    if recompressed and quality_inconsistent:
        report.flag(
            ledger, Category.COMPRESSION, "stacked-compression", Severity.CRITICAL, STACKED_COMPRESSION_DEDUCTION,
            "Repeated saves and divergent quality settings corroborate each other: "
            "the image went through multiple edit-and-save cycles.",
        )

    logger.debug(
        "Scan complete: format=%s exif=%s software=%s deduction=%d",
        buffer.format.value, report.has_exif, report.software_label, report.deduction,
    )
    return report
