"""
PdfDrop — Conversion state, timings and pipeline output contracts.

Every conversion returns a ConversionOutput with full traceability:
timings, content hash, verification result and (server path) the
persisted ConversionRecord.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, Field

from app.models.conversion import ConversionRecord


class ConversionState(str, enum.Enum):
    UPLOADED = "UPLOADED"
    VALIDATED = "VALIDATED"
    NORMALIZED = "NORMALIZED"
    COMPOSITED = "COMPOSITED"
    ENCODED = "ENCODED"
    PERSISTED = "PERSISTED"
    DELIVERED_AND_PURGED = "DELIVERED_AND_PURGED"
    DELETED = "DELETED"
    FAILED = "FAILED"


class StepTiming(BaseModel):
    step: str
    duration_ms: int
    status: str = "ok"  # ok | skipped | failed
    detail: str = ""


class VerificationResult(BaseModel):
    header_ok: bool = False
    page_count: int = 0
    page_width: float = 0.0
    page_height: float = 0.0
    image_count: int = 0
    image_rect: tuple[float, float, float, float] | None = None
    file_size: int = 0
    content_hash: str = ""
    checks: dict[str, bool] = Field(default_factory=dict)
    checks_passed: int = 0
    checks_total: int = 0
    passed: bool = False

    @property
    def failures(self) -> list[str]:
        return [name for name, ok in self.checks.items() if not ok]


class ConversionOutput(BaseModel):
    """Complete output contract for one conversion."""

    job_id: str
    method: str
    filename: str
    pdf_bytes: bytes = Field(repr=False)
    content_hash: str = ""  # SHA-256 of the PDF
    source_format: str = ""
    record: ConversionRecord | None = None
    timings: list[StepTiming] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    verification: VerificationResult | None = None

    def summary(self) -> dict[str, Any]:
        """JSON-safe view without the PDF payload."""
        return self.model_dump(exclude={"pdf_bytes"}, mode="json")
