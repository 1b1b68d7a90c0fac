"""
PdfDrop — Async SQLite store for ConversionRecords.

The store is constructed explicitly and owns one connection for the life
of the process: open() at startup, close() at shutdown. All operations
are keyed by record id or owner id.
"""

from __future__ import annotations

import os
from datetime import datetime

import aiosqlite

from app.models.conversion import ConversionRecord
from app.utils.logging import logger

_SCHEMA = """
CREATE TABLE IF NOT EXISTS file_conversions (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    original_file TEXT NOT NULL,
    file_type TEXT NOT NULL,
    output_path TEXT NOT NULL,
    method TEXT NOT NULL,
    converted_at TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""
_INDEX = """
CREATE INDEX IF NOT EXISTS ix_file_conversions_owner_created
    ON file_conversions (owner_id, created_at DESC)
"""

_COLUMNS = (
    "id", "owner_id", "original_file", "file_type", "output_path",
    "method", "converted_at", "created_at", "updated_at",
)


class StoreClosedError(RuntimeError):
    pass


def _row_to_record(row: aiosqlite.Row) -> ConversionRecord:
    data = dict(zip(_COLUMNS, row))
    for key in ("converted_at", "created_at", "updated_at"):
        data[key] = datetime.fromisoformat(data[key])
    return ConversionRecord(**data)


class ConversionStore:
    def __init__(self, db_path: str):
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def open(self) -> "ConversionStore":
        if self._db is not None:
            return self
        if self.db_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)
        self._db = await aiosqlite.connect(self.db_path)
        await self._db.execute(_SCHEMA)
        await self._db.execute(_INDEX)
        await self._db.commit()
        logger.info("  Conversion store opened: %s", self.db_path)
        return self

    async def close(self) -> None:
        if self._db is None:
            return
        await self._db.close()
        self._db = None
        logger.info("  Conversion store closed")

    async def __aenter__(self) -> "ConversionStore":
        return await self.open()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreClosedError("ConversionStore is not open")
        return self._db

    async def create(self, record: ConversionRecord) -> ConversionRecord:
        await self.db.execute(
            f"INSERT INTO file_conversions ({', '.join(_COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in _COLUMNS)})",
            (
                record.id,
                record.owner_id,
                record.original_file,
                record.file_type,
                record.output_path,
                record.method,
                record.converted_at.isoformat(),
                record.created_at.isoformat(),
                record.updated_at.isoformat(),
            ),
        )
        await self.db.commit()
        return record

    async def get(self, record_id: str) -> ConversionRecord | None:
        async with self.db.execute(
            f"SELECT {', '.join(_COLUMNS)} FROM file_conversions WHERE id = ?",
            (record_id,),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    async def list_for_owner(self, owner_id: str) -> list[ConversionRecord]:
        """Newest first; insertion order breaks created_at ties."""
        async with self.db.execute(
            f"SELECT {', '.join(_COLUMNS)} FROM file_conversions "
            "WHERE owner_id = ? ORDER BY created_at DESC, rowid DESC",
            (owner_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def delete(self, record_id: str) -> bool:
        """Remove a record. Returns False if it was already gone."""
        cursor = await self.db.execute(
            "DELETE FROM file_conversions WHERE id = ?", (record_id,),
        )
        await self.db.commit()
        return cursor.rowcount > 0
