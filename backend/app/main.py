"""
PdfDrop — FastAPI Backend

Endpoints (all /v1/pdf routes require a Bearer JWT):
  POST   /v1/pdf/convert      — Image → single-page A4 PDF (stored, single-use)
  GET    /v1/pdf/conversions  — Caller's conversion history, newest first
  GET    /v1/pdf/{id}         — Download; purged after a complete download
  DELETE /v1/pdf/{id}         — Delete (idempotent)
  GET    /health              — Health check
"""

import re
import time
from urllib.parse import quote

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from app.core.config import settings
from app.core.security import TokenPayload, get_current_user
from app.errors import PdfDropError, UploadTooLargeError
from app.pipeline.delivery import stream_and_purge
from app.pipeline.service import ConversionService
from app.storage.blobs import BlobStore
from app.storage.db import ConversionStore
from app.utils.logging import logger, new_request_id, step_timer


app = FastAPI(
    title="PdfDrop API",
    description="Convert photos to single-page A4 PDFs with one-time downloads.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Request-Id", "X-Pipeline-Duration-Ms"],
)


@app.on_event("startup")
async def _startup():
    store = ConversionStore(settings.db_path)
    await store.open()
    blobs = BlobStore(settings.upload_dir)
    blobs.ensure()
    app.state.service = ConversionService(store, blobs, settings.conversion)

    logger.info("")
    logger.info("╔══════════════════════════════════════════════════╗")
    logger.info("║              PdfDrop  ·  API Server              ║")
    logger.info("╠══════════════════════════════════════════════════╣")
    logger.info("║  POST   /v1/pdf/convert     → Image → PDF        ║")
    logger.info("║  GET    /v1/pdf/conversions → History            ║")
    logger.info("║  GET    /v1/pdf/{id}        → One-time download  ║")
    logger.info("║  DELETE /v1/pdf/{id}        → Delete             ║")
    logger.info("║  GET    /health             → Health check       ║")
    logger.info("╠══════════════════════════════════════════════════╣")
    logger.info("║  Uploads : %-38s║", settings.upload_dir)
    logger.info("║  Store   : %-38s║", settings.db_path)
    logger.info("╚══════════════════════════════════════════════════╝")
    logger.info("")


@app.on_event("shutdown")
async def _shutdown():
    service = getattr(app.state, "service", None)
    if service is not None:
        await service.store.close()


def get_service(request: Request) -> ConversionService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Conversion service is not ready")
    return service


def _http_error(exc: PdfDropError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_dict())


_INTERNAL_ERROR = {"error_code": "INTERNAL_ERROR", "message": "Internal server error"}


def _content_disposition(filename: str) -> str:
    ascii_name = re.sub(r"[^A-Za-z0-9._ -]", "_", filename) or "converted.pdf"
    return f"inline; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


# ──────────────────────────────────────────────────────────
# Endpoints
# ──────────────────────────────────────────────────────────

@app.get("/health")
async def health():
    return {"status": "ok", "service": "pdfdrop-api", "version": "1.0.0"}


@app.post("/v1/pdf/convert")
async def convert_to_pdf(
    file: UploadFile = File(..., description="Image to convert"),
    user: TokenPayload = Depends(get_current_user),
    service: ConversionService = Depends(get_service),
):
    """
    Convert one uploaded image into a single-page A4 PDF.

    The upload is discarded after conversion. The PDF is kept until its
    first complete download or an explicit delete.
    """
    request_id = new_request_id()
    start = time.perf_counter()
    logger.info(
        "[%s] POST /v1/pdf/convert — %s (%s) user=%s",
        request_id, file.filename, file.content_type, user.user_id,
    )

    limit_bytes = int(service.config.max_upload_mb * 1024 * 1024)
    try:
        # One byte past the cap is enough to reject without buffering the rest.
        content = await file.read(limit_bytes + 1)
        if len(content) > limit_bytes:
            size = file.size or len(content)
            raise UploadTooLargeError(
                file.filename or "upload", size / (1024 * 1024), service.config.max_upload_mb,
            )
        with step_timer("convert", request_id):
            output = await service.convert(
                source_bytes=content,
                source_name=file.filename or "",
                declared_mime=file.content_type or "",
                owner_id=user.user_id,
            )
    except PdfDropError as exc:
        logger.warning("[%s] PdfDrop error: %s", request_id, exc.code)
        raise _http_error(exc)
    except Exception:
        logger.exception("[%s] Conversion failed", request_id)
        raise HTTPException(status_code=500, detail=_INTERNAL_ERROR)
    finally:
        content = b""
        await file.close()

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("[%s] Complete — %d bytes in %.0f ms", request_id, len(output.pdf_bytes), elapsed_ms)

    return {
        "message": "File converted to PDF successfully",
        "conversion": output.record.public_dict(),
        "warnings": output.warnings,
        "timings": [t.model_dump() for t in output.timings],
    }


@app.get("/v1/pdf/conversions")
async def list_conversions(
    user: TokenPayload = Depends(get_current_user),
    service: ConversionService = Depends(get_service),
):
    """The caller's stored conversions, most recent first."""
    records = await service.list_conversions(user.user_id)
    return {"conversions": [r.public_dict() for r in records]}


@app.get(
    "/v1/pdf/{conversion_id}",
    response_class=StreamingResponse,
    responses={
        200: {"content": {"application/pdf": {}}, "description": "Converted PDF"},
        403: {"description": "Conversion belongs to another user"},
        404: {"description": "Conversion not found or already downloaded"},
    },
)
async def download_pdf(
    conversion_id: str,
    user: TokenPayload = Depends(get_current_user),
    service: ConversionService = Depends(get_service),
):
    """
    Stream a converted PDF inline.

    A download that completes purges the PDF and its record; an
    interrupted one leaves both in place for a retry.
    """
    request_id = new_request_id()
    logger.info("[%s] GET /v1/pdf/%s user=%s", request_id, conversion_id, user.user_id)

    try:
        delivery = await service.fetch_and_purge(conversion_id, user.user_id, request_id)
    except PdfDropError as exc:
        logger.warning("[%s] PdfDrop error: %s", request_id, exc.code)
        raise _http_error(exc)

    return StreamingResponse(
        stream_and_purge(delivery),
        media_type="application/pdf",
        headers={
            "Content-Disposition": _content_disposition(delivery.filename),
            "Content-Length": str(delivery.size),
            "Cache-Control": "no-store",
            "X-Request-Id": request_id,
        },
    )


@app.delete("/v1/pdf/{conversion_id}")
async def delete_conversion(
    conversion_id: str,
    user: TokenPayload = Depends(get_current_user),
    service: ConversionService = Depends(get_service),
):
    """Delete a conversion; deleting one that is already gone succeeds."""
    request_id = new_request_id()
    logger.info("[%s] DELETE /v1/pdf/%s user=%s", request_id, conversion_id, user.user_id)

    try:
        state = await service.delete(conversion_id, user.user_id)
    except PdfDropError as exc:
        logger.warning("[%s] PdfDrop error: %s", request_id, exc.code)
        raise _http_error(exc)

    if state is None:
        return {"message": "Conversion already deleted or not found"}
    return {"message": "Conversion deleted successfully", "state": state.value}
