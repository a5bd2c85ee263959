"""Blob storage — local filesystem implementation."""

import asyncio
import logging
import os
import re
import tempfile
import time
import uuid
from pathlib import Path
from typing import BinaryIO

from codedrop.exceptions import BlobMissing, InvalidFileReference, StorageFailure
from codedrop.services.types import StoredFile

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
MAX_NAME_LENGTH = 80


def sanitize_filename(original_name: str) -> str:
    """Reduce a client-supplied filename to a safe basename fragment."""
    base = re.split(r"[\\/]", original_name or "")[-1]
    safe = _UNSAFE_CHARS.sub("_", base).strip("._")
    if not safe:
        return "file"
    if len(safe) > MAX_NAME_LENGTH:
        stem, dot, ext = safe.rpartition(".")
        if dot and 0 < len(ext) <= 16:
            safe = stem[: MAX_NAME_LENGTH - len(ext) - 1] + "." + ext
        else:
            safe = safe[:MAX_NAME_LENGTH]
    return safe


def make_storage_name(original_name: str, token: str, timestamp: float) -> str:
    """Build the on-disk name for a blob from its upload context."""
    return f"{int(timestamp * 1000)}-{token}-{sanitize_filename(original_name)}"


class LocalStorage:
    """Stores blobs flat under a single directory, keyed by storage name."""

    def __init__(self, base: Path):
        self.base = Path(base)
        self.base.mkdir(parents=True, exist_ok=True)

    def _resolve(self, key: str) -> Path:
        if not key or key != Path(key).name or key in (".", ".."):
            raise InvalidFileReference()
        path = self.base / key
        if path.resolve().parent != self.base.resolve():
            raise InvalidFileReference()
        return path

    def generate_key(self, original_name: str) -> str:
        return make_storage_name(original_name, uuid.uuid4().hex[:12], time.time())

    def _write_durable(self, data: bytes, dest: Path) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.base, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, dest)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def put(self, data: bytes, original_name: str, mime_type: str | None = None) -> StoredFile:
        key = self.generate_key(original_name)
        dest = self._resolve(key)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._write_durable, data, dest)
        except OSError as e:
            logger.error("Failed to write blob %s: %s", key, e)
            raise StorageFailure() from e
        return StoredFile(
            storage_name=key,
            original_name=(original_name or "file")[:255],
            size_bytes=len(data),
            mime_type=mime_type or None,
        )

    async def open(self, key: str) -> BinaryIO:
        path = self._resolve(key)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, path.open, "rb")
        except FileNotFoundError as e:
            raise BlobMissing() from e
        except OSError as e:
            logger.error("Failed to open blob %s: %s", key, e)
            raise StorageFailure("Stored file is unavailable") from e

    async def delete(self, key: str) -> None:
        path = self._resolve(key)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, lambda: path.unlink(missing_ok=True))
        except OSError as e:
            raise StorageFailure() from e

    def exists(self, key: str) -> bool:
        return self._resolve(key).exists()

    def list_stale(self, max_age: float) -> list[str]:
        """Blob and temp-file names last modified more than ``max_age`` seconds ago."""
        cutoff = time.time() - max_age
        stale = []
        for item in self.base.iterdir():
            try:
                if item.is_file() and item.stat().st_mtime < cutoff:
                    stale.append(item.name)
            except FileNotFoundError:
                continue
        return stale


def iter_file(handle: BinaryIO, chunk_size: int = 64 * 1024):
    """Yield chunks from an open blob, closing it when exhausted or abandoned."""
    try:
        while True:
            chunk = handle.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        handle.close()
