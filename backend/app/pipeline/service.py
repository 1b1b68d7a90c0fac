"""
PdfDrop — Conversion service.

The core-facing interface used by the HTTP layer:

  convert(source_bytes, source_name, declared_mime, owner_id)
  list_conversions(owner_id)
  fetch_and_purge(record_id, owner_id)   → single-use Delivery
  delete(record_id, owner_id)            → DELETED, idempotent

Ownership is enforced on every keyed operation.
"""

from __future__ import annotations

from app.core.config import ConversionConfig, settings
from app.errors import ConversionNotFoundError, CorruptedOutputError, ForbiddenError
from app.models.conversion import ConversionRecord, ConversionRequest
from app.models.job import ConversionOutput, ConversionState
from app.pipeline.delivery import Delivery
from app.pipeline.orchestrator import ConversionOrchestrator
from app.storage.blobs import BlobStore
from app.storage.db import ConversionStore
from app.utils.logging import logger


class ConversionService:
    def __init__(
        self,
        store: ConversionStore,
        blobs: BlobStore,
        config: ConversionConfig | None = None,
    ):
        self.store = store
        self.blobs = blobs
        self.config = config or settings.conversion

    async def convert(
        self,
        source_bytes: bytes,
        source_name: str,
        declared_mime: str,
        owner_id: str,
    ) -> ConversionOutput:
        orchestrator = ConversionOrchestrator(
            request=ConversionRequest(
                source_bytes=source_bytes,
                source_name=source_name,
                declared_mime_type=declared_mime,
            ),
            owner_id=owner_id,
            method="server",
            store=self.store,
            blobs=self.blobs,
            config=self.config,
        )
        return await orchestrator.run()

    async def list_conversions(self, owner_id: str) -> list[ConversionRecord]:
        return await self.store.list_for_owner(owner_id)

    async def _owned(self, record_id: str, owner_id: str) -> ConversionRecord | None:
        record = await self.store.get(record_id)
        if record is not None and record.owner_id != owner_id:
            logger.warning("  Owner mismatch on conversion %s", record_id)
            raise ForbiddenError(record_id)
        return record

    async def fetch_and_purge(self, record_id: str, owner_id: str, request_id: str = "-") -> Delivery:
        """
        Prepare the single-use download of a stored PDF.

        The purge itself happens only when the returned Delivery reports a
        COMPLETED stream.
        """
        record = await self._owned(record_id, owner_id)
        if record is None:
            raise ConversionNotFoundError(record_id)

        if not self.blobs.exists(record.output_path):
            logger.error("[%s] PDF blob missing for conversion %s", request_id, record_id)
            raise ConversionNotFoundError(record_id)

        size = self.blobs.size(record.output_path)
        if size < self.config.min_pdf_bytes:
            logger.error("[%s] PDF blob for %s too small (%d bytes)", request_id, record_id, size)
            raise CorruptedOutputError(size, self.config.min_pdf_bytes)

        return Delivery(record, size, self.store, self.blobs, request_id)

    async def delete(self, record_id: str, owner_id: str) -> ConversionState | None:
        """
        Delete a conversion and its PDF. Returns DELETED, or None if it was
        already gone; that is still a success.
        """
        record = await self._owned(record_id, owner_id)
        if record is None:
            logger.info("  Conversion %s already deleted or never existed", record_id)
            return None

        self.blobs.delete(record.output_path)
        await self.store.delete(record_id)
        logger.info("  Conversion %s → %s", record_id, ConversionState.DELETED.value)
        return ConversionState.DELETED
