"""
PdfDrop — Single-use PDF delivery.

A stored PDF is purged (blob + record) as a side effect of its first
fully streamed download. One completion handler decides the outcome:

  STREAMING → COMPLETED       → purge blob and record (DELIVERED_AND_PURGED)
            → STREAM_ERROR    → keep both, retrievable later
            → CLIENT_ABORTED  → keep both, retrievable later

The first outcome reported wins; later reports are ignored.
"""

from __future__ import annotations

import enum
from typing import AsyncIterator

from app.models.conversion import ConversionRecord
from app.models.job import ConversionState
from app.storage.blobs import BlobStore
from app.storage.db import ConversionStore
from app.utils.logging import logger


class DeliveryOutcome(str, enum.Enum):
    COMPLETED = "COMPLETED"
    STREAM_ERROR = "STREAM_ERROR"
    CLIENT_ABORTED = "CLIENT_ABORTED"


class Delivery:
    """One download of one ConversionRecord."""

    def __init__(
        self,
        record: ConversionRecord,
        size: int,
        store: ConversionStore,
        blobs: BlobStore,
        request_id: str = "-",
    ):
        self.record = record
        self.size = size
        self.store = store
        self.blobs = blobs
        self.request_id = request_id
        self.state = ConversionState.PERSISTED
        self.outcome: DeliveryOutcome | None = None
        self.bytes_sent = 0

    @property
    def filename(self) -> str:
        return self.record.download_name

    async def stream(self) -> AsyncIterator[bytes]:
        async for chunk in self.blobs.read_chunks(self.record.output_path):
            self.bytes_sent += len(chunk)
            yield chunk

    async def complete(self, outcome: DeliveryOutcome) -> None:
        if self.outcome is not None:
            return
        self.outcome = outcome

        # Anything short of a full stream keeps the PDF retrievable. This
        # branch must not await: it runs while the response task is cancelled.
        if outcome is not DeliveryOutcome.COMPLETED or self.bytes_sent < self.size:
            logger.info(
                "[%s] PDF %s kept — outcome=%s sent=%d/%d",
                self.request_id, self.record.id, outcome.value, self.bytes_sent, self.size,
            )
            return

        self.blobs.delete(self.record.output_path)
        await self.store.delete(self.record.id)
        self.state = ConversionState.DELIVERED_AND_PURGED
        logger.info(
            "[%s] PDF %s delivered (%d bytes) and purged",
            self.request_id, self.record.id, self.bytes_sent,
        )


async def stream_and_purge(delivery: Delivery) -> AsyncIterator[bytes]:
    """HTTP body: stream the PDF, then report exactly one outcome."""
    outcome = DeliveryOutcome.CLIENT_ABORTED
    try:
        async for chunk in delivery.stream():
            yield chunk
        outcome = DeliveryOutcome.COMPLETED
    except OSError:
        outcome = DeliveryOutcome.STREAM_ERROR
        logger.exception("[%s] Error streaming PDF %s", delivery.request_id, delivery.record.id)
        raise
    finally:
        await delivery.complete(outcome)
