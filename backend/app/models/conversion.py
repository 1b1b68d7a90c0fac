"""
PdfDrop — Typed conversion data model.

Ephemeral pipeline values (request, normalized raster, page geometry) are
plain dataclasses; the persisted ConversionRecord is a Pydantic model so it
round-trips cleanly through the store and the API.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Any, Literal

from pydantic import BaseModel, Field

ConversionMethod = Literal["client", "server"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConversionRequest:
    """One upload, owned by the orchestrator until encoding terminates."""
    source_bytes: bytes
    source_name: str = ""
    declared_mime_type: str = ""

    def release(self) -> None:
        self.source_bytes = b""

    @property
    def released(self) -> bool:
        return not self.source_bytes


@dataclass(frozen=True)
class NormalizedImage:
    pixels: bytes
    width: int
    height: int
    encoding: str = "jpeg"
    source_format: str = ""

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Normalized image must have positive dimensions, got {self.width}x{self.height}")


@dataclass(frozen=True)
class PageGeometry:
    page_width: float
    page_height: float
    scale: float
    draw_x: float
    draw_y: float
    draw_width: float
    draw_height: float

    def rect(self) -> tuple[float, float, float, float]:
        return (self.draw_x, self.draw_y, self.draw_x + self.draw_width, self.draw_y + self.draw_height)


def pdf_filename(source_name: str) -> str:
    """Download name: the original stem with a .pdf extension."""
    stem = PurePath(source_name or "image").stem or "image"
    return f"{stem}.pdf"


class ConversionRecord(BaseModel):
    """Provenance row for one server-side conversion."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    owner_id: str = Field(min_length=1)
    original_file: str
    file_type: str
    output_path: str
    method: ConversionMethod = "server"
    converted_at: datetime = Field(default_factory=_now)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def download_name(self) -> str:
        return pdf_filename(self.original_file)

    def public_dict(self) -> dict[str, Any]:
        """API view; the storage key stays server-side."""
        d = self.model_dump(exclude={"output_path", "owner_id"}, mode="json")
        d["download_url"] = f"/v1/pdf/{self.id}"
        return d
