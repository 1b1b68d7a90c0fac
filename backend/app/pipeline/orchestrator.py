"""
PdfDrop — Conversion Orchestrator.

Runs one image → PDF conversion as a state machine:

  UPLOADED → VALIDATED → NORMALIZED → COMPOSITED → ENCODED → PERSISTED

Each step is timed, logged, and recorded in the ConversionOutput. Any
failure before PERSISTED leaves nothing behind: no blob, no record, and
the uploaded buffer is released whatever the outcome.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
import uuid

from app.core.config import ConversionConfig, settings
from app.errors import (
    CorruptedOutputError,
    CorruptInputError,
    EncodingFailedError,
    PdfDropError,
    StorageError,
    UnsupportedInputTypeError,
)
from app.models.conversion import (
    ConversionMethod,
    ConversionRecord,
    ConversionRequest,
    NormalizedImage,
    PageGeometry,
    pdf_filename,
)
from app.models.job import ConversionOutput, ConversionState, StepTiming, VerificationResult
from app.pdf.compositor import compute_geometry
from app.pdf.image_to_pdf import encode_pdf
from app.pdf.normalize import SUPPORTED_MIME_TYPES, normalize_image
from app.pdf.verify import PDFVerifier, VerifyExpectations
from app.storage.blobs import BlobStore
from app.storage.db import ConversionStore
from app.utils.logging import logger


def is_supported_mime(declared_mime: str) -> bool:
    return declared_mime.split(";", 1)[0].strip().lower() in SUPPORTED_MIME_TYPES


class PipelineContext:
    """Mutable context passed through pipeline steps."""

    def __init__(self):
        self.image: NormalizedImage | None = None
        self.geometry: PageGeometry | None = None
        self.pdf_bytes: bytes = b""
        self.verification: VerificationResult | None = None
        self.record: ConversionRecord | None = None
        self.warnings: list[str] = []


class ConversionOrchestrator:
    """
    State-machine orchestrator for one conversion.

    method="server" persists the PDF through `blobs` and `store`;
    method="client" (device-local) only returns the bytes.
    """

    def __init__(
        self,
        request: ConversionRequest,
        owner_id: str = "",
        method: ConversionMethod = "server",
        store: ConversionStore | None = None,
        blobs: BlobStore | None = None,
        config: ConversionConfig | None = None,
        verify: bool = True,
    ):
        if method == "server" and (store is None or blobs is None or not owner_id):
            raise ValueError("server conversions need an owner, a store and a blob store")
        self.job_id = uuid.uuid4().hex[:12]
        self.request = request
        self.owner_id = owner_id
        self.method = method
        self.store = store
        self.blobs = blobs
        self.config = config or settings.conversion
        self.verify = verify
        self.state = ConversionState.UPLOADED
        self.ctx = PipelineContext()
        self.timings: list[StepTiming] = []
        self.source_name = request.source_name
        self.declared_mime = request.declared_mime_type

    def _record_step(self, name: str, start: float, status: str = "ok", detail: str = ""):
        ms = int((time.perf_counter() - start) * 1000)
        self.timings.append(StepTiming(step=name, duration_ms=ms, status=status, detail=detail))
        symbol = "✓" if status == "ok" else ("⊘" if status == "skipped" else "✗")
        logger.info("[%s]   %s %s — %dms %s", self.job_id, symbol, name, ms, detail)

    async def run(self) -> ConversionOutput:
        """Execute the full pipeline. Returns a complete ConversionOutput."""
        logger.info(
            "[%s] Conversion starting — %s (%s, %d bytes) method=%s",
            self.job_id, self.source_name or "upload", self.declared_mime or "?",
            len(self.request.source_bytes), self.method,
        )
        pipeline_start = time.perf_counter()

        try:
            await self._step_validate()
            await self._step_normalize()
            await self._step_composite()
            await self._step_encode()
            if self.verify:
                await self._step_verify()
            if self.method == "server":
                await self._step_persist()
        except PdfDropError as exc:
            self.state = ConversionState.FAILED
            logger.warning("[%s] Conversion failed: %s", self.job_id, exc.code)
            raise
        except Exception:
            self.state = ConversionState.FAILED
            raise
        finally:
            self.request.release()

        total_ms = int((time.perf_counter() - pipeline_start) * 1000)
        logger.info(
            "[%s] Conversion complete — %d bytes, %dms",
            self.job_id, len(self.ctx.pdf_bytes), total_ms,
        )

        return ConversionOutput(
            job_id=self.job_id,
            method=self.method,
            filename=pdf_filename(self.source_name),
            pdf_bytes=self.ctx.pdf_bytes,
            content_hash=hashlib.sha256(self.ctx.pdf_bytes).hexdigest(),
            source_format=self.ctx.image.source_format,
            record=self.ctx.record,
            timings=self.timings,
            warnings=self.ctx.warnings,
            verification=self.ctx.verification,
        )

    async def _step_validate(self):
        t = time.perf_counter()
        if not is_supported_mime(self.declared_mime):
            self._record_step("validate", t, "failed", self.declared_mime or "no type")
            raise UnsupportedInputTypeError(self.declared_mime, SUPPORTED_MIME_TYPES)
        if not self.request.source_bytes:
            self._record_step("validate", t, "failed", "empty upload")
            raise CorruptInputError("the upload is empty")
        self.state = ConversionState.VALIDATED
        self._record_step("validate", t)

    async def _step_normalize(self):
        t = time.perf_counter()
        try:
            self.ctx.image = await asyncio.to_thread(
                normalize_image,
                self.request.source_bytes,
                self.source_name,
                self.declared_mime,
                self.config.max_canvas,
                self.config.jpeg_quality,
            )
        except PdfDropError as exc:
            self._record_step("normalize", t, "failed", exc.code)
            raise
        except Exception as exc:
            logger.exception("[%s] Unexpected normalizer failure", self.job_id)
            self._record_step("normalize", t, "failed", type(exc).__name__)
            raise CorruptInputError() from exc

        image = self.ctx.image
        if image.source_format == "heif" and not self.declared_mime.lower().startswith(("image/heic", "image/heif")):
            self.ctx.warnings.append(f"Declared {self.declared_mime} but content is HEIC; converted as HEIC.")
        self.state = ConversionState.NORMALIZED
        self._record_step(
            "normalize", t,
            detail=f"{image.source_format} → {image.width}x{image.height} {image.encoding}",
        )

    async def _step_composite(self):
        t = time.perf_counter()
        page_w, page_h = self.config.page_size
        self.ctx.geometry = compute_geometry(self.ctx.image.width, self.ctx.image.height, page_w, page_h)
        self.state = ConversionState.COMPOSITED
        self._record_step("composite", t, detail=f"scale={self.ctx.geometry.scale:.5f}")

    async def _step_encode(self):
        t = time.perf_counter()
        try:
            self.ctx.pdf_bytes = await encode_pdf(
                self.ctx.image,
                self.ctx.geometry,
                timeout_s=self.config.encode_timeout_s,
                min_bytes=self.config.min_pdf_bytes,
            )
        except (EncodingFailedError, CorruptedOutputError) as exc:
            self._record_step("encode", t, "failed", exc.code)
            raise
        self.state = ConversionState.ENCODED
        self._record_step("encode", t, detail=f"{len(self.ctx.pdf_bytes)} bytes")

    async def _step_verify(self):
        t = time.perf_counter()
        expectations = VerifyExpectations(
            page_size=self.config.page_size,
            image_rect=self.ctx.geometry.rect(),
            min_bytes=self.config.min_pdf_bytes,
        )
        verification = await asyncio.to_thread(PDFVerifier().verify, self.ctx.pdf_bytes, expectations)
        self.ctx.verification = verification
        if not verification.passed:
            self._record_step("verify", t, "failed", ", ".join(verification.failures))
            raise CorruptedOutputError(
                len(self.ctx.pdf_bytes), self.config.min_pdf_bytes, verification.failures,
            )
        self._record_step("verify", t, detail=f"{verification.checks_passed}/{verification.checks_total} checks")

    async def _step_persist(self):
        t = time.perf_counter()
        key = self.blobs.new_key()
        try:
            await self.blobs.write(key, self.ctx.pdf_bytes)
        except OSError as exc:
            self.blobs.delete(key)
            self._record_step("persist", t, "failed", "blob write failed")
            logger.error("[%s] Blob write failed: %s", self.job_id, exc)
            raise StorageError(exc.strerror or type(exc).__name__) from exc
        except BaseException:
            self.blobs.delete(key)
            self._record_step("persist", t, "failed", "blob write interrupted")
            raise
        try:
            self.ctx.record = await self.store.create(ConversionRecord(
                owner_id=self.owner_id,
                original_file=self.source_name or "image",
                file_type=self.declared_mime,
                output_path=key,
                method=self.method,
            ))
        except BaseException:
            self.blobs.delete(key)
            self._record_step("persist", t, "failed", "record insert failed")
            raise
        self.state = ConversionState.PERSISTED
        self._record_step("persist", t, detail=f"record {self.ctx.record.id}")
