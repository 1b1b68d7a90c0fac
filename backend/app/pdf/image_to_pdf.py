"""
PdfDrop — Image to PDF encoder.

Embeds one normalized raster into a single fixed-size page at the
geometry computed by the compositor. Serialization runs in a worker
thread and is bounded by a timeout so a hung encode never stalls the
event loop.
"""

from __future__ import annotations

import asyncio

import fitz

from app.errors import CorruptedOutputError, EncodingFailedError, EncodingTimeoutError
from app.models.conversion import NormalizedImage, PageGeometry
from app.utils.logging import logger

EMBEDDABLE_ENCODINGS = {"jpeg", "png"}
PDF_HEADER = b"%PDF-"
MIN_PDF_BYTES = 100
ENCODE_TIMEOUT_S = 10.0


def render_pdf(image: NormalizedImage, geometry: PageGeometry) -> bytes:
    """Synchronously build the one-page PDF. Returns the raw PDF bytes."""
    if image.encoding not in EMBEDDABLE_ENCODINGS:
        raise EncodingFailedError(
            f"Raster encoding '{image.encoding}' cannot be embedded"
        )

    doc = fitz.open()
    try:
        page = doc.new_page(width=geometry.page_width, height=geometry.page_height)
        rect = fitz.Rect(*geometry.rect())
        page.insert_image(rect, stream=image.pixels, keep_proportion=True)
        pdf_bytes = doc.tobytes(garbage=3, deflate=True)
    finally:
        doc.close()
    return pdf_bytes


def check_plausible(pdf_bytes: bytes, min_bytes: int = MIN_PDF_BYTES) -> None:
    """Reject empty, tiny or header-less output as corruption."""
    if len(pdf_bytes) < min_bytes or not pdf_bytes.startswith(PDF_HEADER):
        raise CorruptedOutputError(len(pdf_bytes), min_bytes)


async def encode_pdf(
    image: NormalizedImage,
    geometry: PageGeometry,
    timeout_s: float = ENCODE_TIMEOUT_S,
    min_bytes: int = MIN_PDF_BYTES,
) -> bytes:
    """
    Encode `image` onto one page at `geometry`, bounded by `timeout_s`.

    Raises EncodingFailedError (incl. EncodingTimeoutError) or
    CorruptedOutputError; never returns an implausible buffer.
    """
    try:
        pdf_bytes = await asyncio.wait_for(
            asyncio.to_thread(render_pdf, image, geometry),
            timeout=timeout_s,
        )
    except asyncio.TimeoutError as exc:
        logger.error("  PDF encode exceeded %.1fs", timeout_s)
        raise EncodingTimeoutError(timeout_s) from exc
    except EncodingFailedError:
        raise
    except Exception as exc:
        logger.exception("  PDF encode failed")
        raise EncodingFailedError() from exc

    check_plausible(pdf_bytes, min_bytes)
    logger.info(
        "  Created 1-page PDF (%d bytes), image at (%.2f, %.2f) %.2fx%.2f pt",
        len(pdf_bytes), geometry.draw_x, geometry.draw_y,
        geometry.draw_width, geometry.draw_height,
    )
    return pdf_bytes
