"""Shared test configuration and fixtures for the PdfDrop test suite."""

import io
import os
import sys
import tempfile
from pathlib import Path

import pytest

# Add backend to Python path so imports work
backend_dir = str(Path(__file__).parent.parent / "backend")
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

# Settings are read once at import; point them somewhere disposable first.
os.environ.setdefault("PDFDROP_UPLOAD_DIR", tempfile.mkdtemp(prefix="pdfdrop-test-"))
os.environ.setdefault("JWT_SECRET", "test-secret")

from PIL import Image  # noqa: E402


def _encode(img: Image.Image, fmt: str, **kwargs) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt, **kwargs)
    return buf.getvalue()


@pytest.fixture
def make_image():
    """Factory: make_image(width, height, fmt="JPEG", mode="RGB") -> bytes."""
    def _make(width: int, height: int, fmt: str = "JPEG", mode: str = "RGB") -> bytes:
        color = (200, 40, 40, 128) if mode == "RGBA" else (200, 40, 40)
        img = Image.new(mode, (width, height), color[: len(mode)])
        return _encode(img, fmt)
    return _make


@pytest.fixture
def noisy_jpeg():
    """A JPEG with real entropy, so truncating it leaves a broken scan."""
    img = Image.effect_noise((256, 256), 64).convert("RGB")
    return _encode(img, "JPEG", quality=95)


@pytest.fixture
def heic_bytes():
    """A real HEIC photo, or skip when libheif has no encoder here."""
    try:
        import pillow_heif
    except ImportError:
        pytest.skip("pillow-heif not installed")
    img = Image.new("RGB", (640, 480), (30, 120, 200))
    try:
        heif_file = pillow_heif.from_pillow(img)
        buf = io.BytesIO()
        heif_file.save(buf, quality=80)
    except Exception as exc:
        pytest.skip(f"HEIC encoder unavailable: {exc}")
    return buf.getvalue()


@pytest.fixture
def conversion_config():
    from app.core.config import ConversionConfig
    return ConversionConfig(
        max_upload_mb=10,
        encode_timeout_s=10.0,
        min_pdf_bytes=100,
        jpeg_quality=90,
        max_canvas=(2480, 3508),
        page_size=(595.0, 842.0),
    )


@pytest.fixture
def blobs(tmp_path):
    from app.storage.blobs import BlobStore
    store = BlobStore(tmp_path / "uploads")
    store.ensure()
    return store


@pytest.fixture
async def store(tmp_path):
    from app.storage.db import ConversionStore
    s = ConversionStore(str(tmp_path / "pdfdrop.db"))
    await s.open()
    yield s
    await s.close()


@pytest.fixture
def service(store, blobs, conversion_config):
    from app.pipeline.service import ConversionService
    return ConversionService(store, blobs, conversion_config)
