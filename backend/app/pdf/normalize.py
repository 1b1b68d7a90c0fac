"""
PdfDrop — Image normalizer.

Turns an uploaded image buffer into a baseline JPEG raster that the PDF
encoder can embed directly.

  1. Sniff the real format from magic bytes (the MIME hint is not trusted:
     iOS pickers routinely label HEIC photos as image/jpeg)
  2. HEIC/HEIF → dedicated transcode via pillow-heif → baseline JPEG
  3. Generic decode with Pillow (first frame, EXIF orientation, alpha on white)
  4. Fit inside the max canvas (A4 @ 300 dpi), never enlarging
  5. Re-encode as JPEG
"""

from __future__ import annotations

import io

import pillow_heif
from PIL import Image, ImageOps, UnidentifiedImageError

from app.errors import CorruptInputError, HeicTranscodeFailedError, UnsupportedInputTypeError
from app.models.conversion import NormalizedImage
from app.utils.logging import logger

MAX_CANVAS = (2480, 3508)
JPEG_QUALITY = 90

MIME_FORMATS = {
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/bmp": "bmp",
    "image/tiff": "tiff",
    "image/heic": "heif",
    "image/heif": "heif",
}
SUPPORTED_MIME_TYPES = list(MIME_FORMATS)

_SIGNATURES: list[tuple[str, bytes]] = [
    ("jpeg", b"\xff\xd8\xff"),
    ("png", b"\x89PNG\r\n\x1a\n"),
    ("gif", b"GIF87a"),
    ("gif", b"GIF89a"),
    ("bmp", b"BM"),
    ("tiff", b"II*\x00"),
    ("tiff", b"MM\x00*"),
]

HEIF_BRANDS = {
    b"heic", b"heix", b"hevc", b"hevx", b"heim", b"heis",
    b"hevm", b"hevs", b"mif1", b"msf1", b"heif",
}
_AVIF_BRANDS = {b"avif", b"avis"}

_DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
)


def _is_heif(data: bytes) -> bool:
    """ISO-BMFF ftyp box carrying a HEIF brand (AVIF excluded)."""
    if len(data) < 12 or data[4:8] != b"ftyp":
        return False
    major = data[8:12]
    box_size = int.from_bytes(data[0:4], "big")
    end = min(max(box_size, 16), len(data))
    compatible = {data[i:i + 4] for i in range(16, end - 3, 4)}
    if major in _AVIF_BRANDS or compatible & _AVIF_BRANDS:
        return False
    return major in HEIF_BRANDS or bool(compatible & HEIF_BRANDS)


def detect_format(data: bytes) -> str | None:
    """Return the real container format of `data`, or None if unrecognised."""
    if _is_heif(data):
        return "heif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    for fmt, magic in _SIGNATURES:
        if data.startswith(magic):
            return fmt
    return None


def mime_format(declared_mime: str) -> str | None:
    mime = declared_mime.split(";", 1)[0].strip().lower()
    return MIME_FORMATS.get(mime)


def _transcode_heic(data: bytes, quality: int = JPEG_QUALITY) -> bytes:
    """Decode a HEIC/HEIF container and re-encode its primary image as JPEG."""
    try:
        heif_file = pillow_heif.open_heif(io.BytesIO(data), convert_hdr_to_8bit=True)
        image = heif_file.to_pillow()
        if image.mode != "RGB":
            image = image.convert("RGB")
        buf = io.BytesIO()
        image.save(buf, format="JPEG", quality=quality)
    except Exception as exc:
        logger.warning("  HEIC transcode failed: %s", exc)
        raise HeicTranscodeFailedError("the file may be corrupted or use an unsupported HEIC profile") from exc
    logger.info("  HEIC → JPEG transcode: %d → %d bytes", len(data), buf.tell())
    return buf.getvalue()


def _flatten(image: Image.Image) -> Image.Image:
    image = ImageOps.exif_transpose(image)
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        canvas = Image.new("RGB", rgba.size, (255, 255, 255))
        canvas.paste(rgba, mask=rgba.getchannel("A"))
        return canvas
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def _decode(data: bytes) -> Image.Image:
    """Generic Pillow decode of a baseline raster; first frame only, RGB out."""
    try:
        image = Image.open(io.BytesIO(data))
        image.seek(0)
        image.load()
        return _flatten(image)
    except _DECODE_ERRORS as exc:
        logger.warning("  Decode failed: %s", exc)
        raise CorruptInputError("the file is truncated or not a valid image") from exc


def normalize_image(
    data: bytes,
    source_name: str = "",
    declared_mime: str = "",
    max_canvas: tuple[int, int] = MAX_CANVAS,
    jpeg_quality: int = JPEG_QUALITY,
) -> NormalizedImage:
    """
    Normalize one image buffer into a baseline JPEG NormalizedImage.

    Raises UnsupportedInputTypeError, CorruptInputError or
    HeicTranscodeFailedError. Never mutates `data`.
    """
    source_format = detect_format(data)
    if source_format is None:
        raise UnsupportedInputTypeError(declared_mime or source_name, SUPPORTED_MIME_TYPES)

    hinted = mime_format(declared_mime)
    if hinted and hinted != source_format:
        logger.warning(
            "  %s declared as %s but content is %s — trusting content",
            source_name or "upload", declared_mime, source_format,
        )

    baseline = data
    if source_format == "heif":
        baseline = _transcode_heic(data, jpeg_quality)

    image = _decode(baseline)
    original_size = image.size

    image.thumbnail(max_canvas, Image.Resampling.LANCZOS)
    width, height = image.size
    if width <= 0 or height <= 0:
        raise CorruptInputError(f"decoded to {width}x{height}")

    buf = io.BytesIO()
    try:
        image.save(buf, format="JPEG", quality=jpeg_quality, optimize=True)
    except _DECODE_ERRORS as exc:
        raise CorruptInputError("the image could not be re-encoded") from exc

    logger.info(
        "  Normalized %s: %dx%d → %dx%d JPEG (%d bytes)",
        source_format, original_size[0], original_size[1], width, height, buf.tell(),
    )
    return NormalizedImage(
        pixels=buf.getvalue(),
        width=width,
        height=height,
        encoding="jpeg",
        source_format=source_format,
    )
