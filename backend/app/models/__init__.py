"""PdfDrop data models — typed contracts for the conversion pipeline."""

from app.models.conversion import (
    ConversionMethod,
    ConversionRequest,
    NormalizedImage,
    PageGeometry,
    ConversionRecord,
    pdf_filename,
)
from app.models.job import (
    ConversionState,
    StepTiming,
    VerificationResult,
    ConversionOutput,
)

__all__ = [
    "ConversionMethod",
    "ConversionRequest",
    "NormalizedImage",
    "PageGeometry",
    "ConversionRecord",
    "pdf_filename",
    "ConversionState",
    "StepTiming",
    "VerificationResult",
    "ConversionOutput",
]
