"""
analysis.py — Pydantic models for the payment-screenshot analysis API.

The response shape is consumed as-is by the upload UI, so field names are
serialized in camelCase (editingDetected, compressionAnomalies, ...) and a
finding's severity is exposed under the "type" key.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FindingSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


# ── Request models ─────────────────────────────────────────────────────────────

class AnalyzePaymentRequest(BaseModel):
    """Screenshot submitted for authenticity analysis."""

    image: str | None = Field(default=None, description="Data URL (data:image/png;base64,...) or bare base64")
    filename: str | None = Field(default=None, description="Original filename, used for logging only")


# ── Response models ────────────────────────────────────────────────────────────

class Finding(BaseModel):
    """One human-readable observation, in detection order."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    severity: FindingSeverity = Field(alias="type")
    message: str


class AnalysisMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    software: str | None = None     # comma-joined editing tools found in metadata
    editing_detected: bool = False
    compression_anomalies: bool = False
    metadata_inconsistencies: bool = False


class AnalysisResult(BaseModel):
    """Final verdict for one screenshot."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    authentic: bool
    confidence: int = Field(ge=0, le=100)
    findings: list[Finding] = Field(default_factory=list)
    metadata: AnalysisMetadata = Field(default_factory=AnalysisMetadata)

    @classmethod
    def analysis_failed(cls) -> "AnalysisResult":
        """Synthetic 'not authentic' result for payloads that cannot be analysed."""
        return cls(
            authentic=False,
            confidence=0,
            findings=[
                Finding(
                    severity=FindingSeverity.CRITICAL,
                    message=(
                        "Failed to analyze image properly. "
                        "File may be corrupted or in an unsupported format."
                    ),
                )
            ],
            metadata=AnalysisMetadata(metadata_inconsistencies=True),
        )
