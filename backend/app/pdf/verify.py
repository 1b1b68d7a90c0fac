"""
PdfDrop — PDF output verification.

Inspects a freshly encoded PDF locally with pymupdf (fitz) before it is
handed back or persisted.

Checks:
  1. Header signature present
  2. Size above the minimum plausible PDF size
  3. PDF opens and parses
  4. Exactly one page
  5. Page size matches the fixed output page
  6. Exactly one embedded image
  7. Image placement matches the computed geometry
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

import fitz

from app.models.job import VerificationResult
from app.pdf.image_to_pdf import MIN_PDF_BYTES, PDF_HEADER
from app.utils.logging import logger

PLACEMENT_TOLERANCE_PT = 0.5


@dataclass
class VerifyExpectations:
    page_size: tuple[float, float] = (595.0, 842.0)
    image_rect: tuple[float, float, float, float] | None = None
    min_bytes: int = MIN_PDF_BYTES


def _close(a: tuple[float, ...], b: tuple[float, ...], tol: float) -> bool:
    return len(a) == len(b) and all(abs(x - y) <= tol for x, y in zip(a, b))


class PDFVerifier:
    """Local PDF inspection using pymupdf. No external calls."""

    def verify(self, pdf_bytes: bytes, expectations: VerifyExpectations) -> VerificationResult:
        checks: dict[str, bool] = {
            "header_signature": pdf_bytes.startswith(PDF_HEADER),
            "plausible_size": len(pdf_bytes) >= expectations.min_bytes,
        }
        result = VerificationResult(
            header_ok=checks["header_signature"],
            file_size=len(pdf_bytes),
            content_hash=hashlib.sha256(pdf_bytes).hexdigest(),
        )

        try:
            doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as exc:
            logger.warning("  Verification: PDF does not parse (%s)", exc)
            checks["opens_and_parses"] = False
            return self._finish(result, checks)

        try:
            result.page_count = len(doc)
            checks["opens_and_parses"] = result.page_count > 0
            checks["single_page"] = result.page_count == 1

            if result.page_count:
                page = doc[0]
                result.page_width = page.rect.width
                result.page_height = page.rect.height
                checks["page_size"] = _close(
                    (result.page_width, result.page_height),
                    expectations.page_size,
                    PLACEMENT_TOLERANCE_PT,
                )

                images = page.get_images(full=True)
                result.image_count = len(images)
                checks["single_image"] = result.image_count == 1

                if images:
                    rects = page.get_image_rects(images[0][0])
                    if rects:
                        r = rects[0]
                        result.image_rect = (r.x0, r.y0, r.x1, r.y1)

                if expectations.image_rect is not None:
                    checks["image_placement"] = result.image_rect is not None and _close(
                        result.image_rect, expectations.image_rect, PLACEMENT_TOLERANCE_PT,
                    )
        finally:
            doc.close()

        return self._finish(result, checks)

    @staticmethod
    def _finish(result: VerificationResult, checks: dict[str, bool]) -> VerificationResult:
        result.checks = checks
        result.checks_passed = sum(checks.values())
        result.checks_total = len(checks)
        result.passed = result.checks_passed == result.checks_total
        logger.info(
            "  Verification: %d/%d checks passed %s",
            result.checks_passed, result.checks_total,
            "✓" if result.passed else "✗ " + ", ".join(result.failures),
        )
        return result
