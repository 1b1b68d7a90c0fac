"""
PdfDrop — On-disk blob storage for converted PDFs.

Keys are generated (`pdfs/<uuid>.pdf`) and never derived from the
uploaded filename. Every key is resolved under the root with a prefix
check before it touches the filesystem.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from pathlib import Path
from typing import AsyncIterator

from app.utils.logging import logger

PDF_PREFIX = "pdfs"
CHUNK_SIZE = 64 * 1024


class BlobPathError(ValueError):
    pass


class BlobStore:
    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def ensure(self) -> None:
        (self.root / PDF_PREFIX).mkdir(parents=True, exist_ok=True)

    def new_key(self) -> str:
        return f"{PDF_PREFIX}/{uuid.uuid4().hex}.pdf"

    def path_for(self, key: str) -> Path:
        if ".." in key or key.startswith(("/", "\\")):
            raise BlobPathError(f"Illegal blob key: {key}")
        resolved = (self.root / key).resolve()
        if not str(resolved).startswith(str(self.root) + os.sep):
            raise BlobPathError(f"Illegal blob key: {key}")
        return resolved

    def _write_sync(self, key: str, data: bytes) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".part")
        try:
            tmp.write_bytes(data)
            os.replace(tmp, path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise

    async def write(self, key: str, data: bytes) -> None:
        await asyncio.to_thread(self._write_sync, key, data)
        logger.info("  Stored blob %s (%d bytes)", key, len(data))

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def size(self, key: str) -> int:
        return self.path_for(key).stat().st_size

    async def read_chunks(self, key: str, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
        path = self.path_for(key)
        with path.open("rb") as fh:
            while True:
                chunk = await asyncio.to_thread(fh.read, chunk_size)
                if not chunk:
                    break
                yield chunk

    def delete(self, key: str) -> bool:
        """Idempotent: a missing blob is already deleted."""
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info("  Deleted blob %s", key)
        return True
