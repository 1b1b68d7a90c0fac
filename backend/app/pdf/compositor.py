"""
PdfDrop — Page compositor.

Places a raster of (width, height) pixels on a fixed page:
uniform scale-to-fit, never upscaled, centered on both axes.
"""

from __future__ import annotations

from app.models.conversion import PageGeometry

# A4 in points (72 dpi)
A4_WIDTH = 595.0
A4_HEIGHT = 842.0


def compute_geometry(
    width: int,
    height: int,
    page_width: float = A4_WIDTH,
    page_height: float = A4_HEIGHT,
) -> PageGeometry:
    """
    scale = min(page_width / width, page_height / height, 1)
    draw_x = (page_width - width * scale) / 2
    draw_y = (page_height - height * scale) / 2
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")

    scale = min(page_width / width, page_height / height, 1.0)
    draw_width = width * scale
    draw_height = height * scale

    return PageGeometry(
        page_width=page_width,
        page_height=page_height,
        scale=scale,
        draw_x=(page_width - draw_width) / 2,
        draw_y=(page_height - draw_height) / 2,
        draw_width=draw_width,
        draw_height=draw_height,
    )
