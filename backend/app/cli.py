"""
PdfDrop — device-local converter.

Runs the same normalize → composite → encode pipeline as the server,
in-process, and writes the PDF next to the caller instead of storing it.
No record is created and nothing is uploaded.
"""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
import time
from pathlib import Path

from app.core.config import settings
from app.errors import PdfDropError
from app.models.conversion import ConversionRequest
from app.pipeline.orchestrator import ConversionOrchestrator
from app.utils.logging import logger, step_timer


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pdfdrop-convert",
        description="Convert one image into a single-page A4 PDF on this machine.",
    )
    p.add_argument("input", type=Path, help="Image file (JPEG, PNG, GIF, WebP, BMP, TIFF, HEIC).")
    p.add_argument(
        "--mime",
        default=None,
        help="Declared MIME type. Default: guessed from the file extension.",
    )
    p.add_argument(
        "--out-dir",
        type=Path,
        default=None,
        help="Directory for the PDF. Default: the input's directory.",
    )
    p.add_argument("--no-verify", action="store_true", help="Skip post-encode PDF verification.")
    return p


def guess_mime(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix in (".heic", ".heif"):
        return "image/heic"
    return mimetypes.guess_type(path.name)[0] or ""


def output_path(input_path: Path, out_dir: Path | None) -> Path:
    """`<stem>-<unix ms>.pdf` so repeated conversions never overwrite."""
    directory = out_dir or input_path.parent
    return directory / f"{input_path.stem}-{int(time.time() * 1000)}.pdf"


async def convert_file(input_path: Path, mime: str, out_dir: Path | None, verify: bool = True) -> Path:
    orchestrator = ConversionOrchestrator(
        request=ConversionRequest(
            source_bytes=input_path.read_bytes(),
            source_name=input_path.name,
            declared_mime_type=mime,
        ),
        method="client",
        config=settings.conversion,
        verify=verify,
    )
    output = await orchestrator.run()

    target = output_path(input_path, out_dir)
    with step_timer("write", output.job_id):
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(output.pdf_bytes)
    logger.info("[%s] Wrote %s (%d bytes)", output.job_id, target, len(output.pdf_bytes))
    return target


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)

    if not args.input.is_file():
        print(f"error: no such file: {args.input}", file=sys.stderr)
        return 1

    mime = args.mime or guess_mime(args.input)
    try:
        target = asyncio.run(convert_file(args.input, mime, args.out_dir, verify=not args.no_verify))
    except PdfDropError as exc:
        print(f"error [{exc.code}]: {exc.message}", file=sys.stderr)
        if exc.suggestion:
            print(f"  {exc.suggestion}", file=sys.stderr)
        return 2
    except OSError as exc:
        print(f"error: {exc.strerror or exc}: {exc.filename or args.input}", file=sys.stderr)
        return 1

    print(target)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
