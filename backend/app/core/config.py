"""
PdfDrop — Backend Configuration
Loads .env automatically, then reads all settings from environment variables.
"""

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(_env_path)

_DEV_JWT_SECRET = "pdfdrop-dev-secret-change-in-production"


@dataclass(frozen=True)
class AuthConfig:
    """JWT verification settings."""
    secret: str
    algorithm: str
    expires_minutes: int


@dataclass(frozen=True)
class ConversionConfig:
    """Limits and tuning for the image → PDF pipeline."""
    max_upload_mb: float
    encode_timeout_s: float
    min_pdf_bytes: int
    jpeg_quality: int
    max_canvas: tuple[int, int]
    page_size: tuple[float, float]


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""
    host: str
    port: int
    debug: bool
    upload_dir: str
    db_path: str
    auth: AuthConfig
    conversion: ConversionConfig


def _parse_size(value: str) -> tuple[int, int]:
    w, _, h = value.lower().partition("x")
    return int(w), int(h)


def _load_config() -> AppConfig:
    upload_dir = os.getenv("PDFDROP_UPLOAD_DIR", "./uploads")
    return AppConfig(
        host=os.getenv("APP_HOST", "0.0.0.0"),
        port=int(os.getenv("APP_PORT", "5001")),
        debug=os.getenv("APP_DEBUG", "false").lower() == "true",
        upload_dir=upload_dir,
        db_path=os.getenv("PDFDROP_DB_PATH", os.path.join(upload_dir, "pdfdrop.db")),
        auth=AuthConfig(
            secret=os.getenv("JWT_SECRET", ""),
            algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            expires_minutes=int(os.getenv("JWT_EXPIRES_MINUTES", str(7 * 24 * 60))),
        ),
        conversion=ConversionConfig(
            max_upload_mb=float(os.getenv("PDFDROP_MAX_UPLOAD_MB", "10")),
            encode_timeout_s=float(os.getenv("PDFDROP_ENCODE_TIMEOUT_S", "10")),
            min_pdf_bytes=int(os.getenv("PDFDROP_MIN_PDF_BYTES", "100")),
            jpeg_quality=int(os.getenv("PDFDROP_JPEG_QUALITY", "90")),
            max_canvas=_parse_size(os.getenv("PDFDROP_MAX_CANVAS", "2480x3508")),
            # A4 in points
            page_size=(595.0, 842.0),
        ),
    )


def _validate_config(cfg: AppConfig) -> AppConfig:
    """Fail fast on values the pipeline cannot run with."""
    problems: list[str] = []
    conv = cfg.conversion
    if conv.max_upload_mb <= 0:
        problems.append("PDFDROP_MAX_UPLOAD_MB must be positive")
    if conv.encode_timeout_s <= 0:
        problems.append("PDFDROP_ENCODE_TIMEOUT_S must be positive")
    if not 1 <= conv.jpeg_quality <= 95:
        problems.append("PDFDROP_JPEG_QUALITY must be between 1 and 95")
    if min(conv.max_canvas) <= 0:
        problems.append("PDFDROP_MAX_CANVAS must look like 2480x3508")
    if problems:
        print(
            f"\n  ERROR: Invalid configuration: {'; '.join(problems)}\n"
            f"  Check backend/.env or the process environment.\n",
            file=sys.stderr,
        )
        sys.exit(1)

    if not cfg.auth.secret:
        print(
            "\n  WARNING: JWT_SECRET not set — using the development secret.\n",
            file=sys.stderr,
        )
        cfg = AppConfig(
            host=cfg.host,
            port=cfg.port,
            debug=cfg.debug,
            upload_dir=cfg.upload_dir,
            db_path=cfg.db_path,
            auth=AuthConfig(
                secret=_DEV_JWT_SECRET,
                algorithm=cfg.auth.algorithm,
                expires_minutes=cfg.auth.expires_minutes,
            ),
            conversion=cfg.conversion,
        )
    return cfg


settings = _validate_config(_load_config())
