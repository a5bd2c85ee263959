"""Transfer service — upload a batch under one share code, redeem a code for downloads."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import BinaryIO

from codedrop.exceptions import (
    BlobMissing,
    DuplicateCodeError,
    ExpiredError,
    FileTooLargeError,
    InvalidFileReference,
    NoFilesError,
    NotFoundError,
    TooManyFilesError,
)
from codedrop.services.registry import FileRegistry
from codedrop.services.types import FileGroup, StoredFile
from codedrop.utils.qr import qr_data_url
from codedrop.utils.storage import LocalStorage

logger = logging.getLogger(__name__)

DEFAULT_MIME = "application/octet-stream"


@dataclass(frozen=True)
class IncomingFile:
    data: bytes
    original_name: str
    mime_type: str | None = None


@dataclass(frozen=True)
class UploadResult:
    code: str
    download_link: str
    qr_image: str
    expires_at: datetime
    files: tuple[StoredFile, ...]


@dataclass(frozen=True)
class BlobDownload:
    file: StoredFile
    handle: BinaryIO

    @property
    def media_type(self) -> str:
        return self.file.mime_type or DEFAULT_MIME


class TransferService:
    def __init__(
        self,
        registry: FileRegistry,
        storage: LocalStorage,
        ttl: timedelta,
        base_url: str = "",
        max_attempts: int = 5,
        max_file_bytes: int | None = None,
        max_files: int | None = None,
    ):
        self.registry = registry
        self.storage = storage
        self.ttl = ttl
        self.base_url = base_url
        self.max_attempts = max_attempts
        self.max_file_bytes = max_file_bytes
        self.max_files = max_files

    def _validate(self, files: list[IncomingFile]) -> None:
        if not files:
            raise NoFilesError()
        if self.max_files is not None and len(files) > self.max_files:
            raise TooManyFilesError(f"At most {self.max_files} files per upload")
        for f in files:
            self.check_size(len(f.data))

    def check_size(self, size: int | None) -> None:
        """Raise FileTooLargeError if ``size`` bytes exceeds the per-file limit."""
        if self.max_file_bytes is not None and size is not None and size > self.max_file_bytes:
            raise FileTooLargeError(f"File too large ({size / (1024 * 1024):.1f} MB)")

    async def upload(self, files: list[IncomingFile], base_url: str | None = None) -> UploadResult:
        """Store every blob, then register them under one code; all or nothing."""
        self._validate(files)

        stored: list[StoredFile] = []
        try:
            for f in files:
                stored.append(await self.storage.put(f.data, f.original_name, f.mime_type))
            group = await self._register(stored)
        except BaseException:
            await self._discard(stored)
            raise

        link = self.download_link(group.code, base_url)
        logger.info("Upload %s: %d file(s), expires %s", group.code, len(group.files), group.expires_at.isoformat())
        return UploadResult(
            code=group.code,
            download_link=link,
            qr_image=qr_data_url(link),
            expires_at=group.expires_at,
            files=group.files,
        )

    async def _register(self, stored: list[StoredFile]) -> FileGroup:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self.registry.create_group(stored, self.ttl)
            except DuplicateCodeError:
                logger.warning("Share code collision (attempt %d/%d), retrying", attempt, self.max_attempts)
        raise DuplicateCodeError()

    async def _discard(self, stored: list[StoredFile]) -> None:
        for f in stored:
            try:
                await self.storage.delete(f.content_path)
            except Exception:
                logger.warning("Failed to discard blob %s after aborted upload", f.storage_name, exc_info=True)

    def download_link(self, code: str, base_url: str | None = None) -> str:
        base = (self.base_url or base_url or "").rstrip("/")
        return f"{base}/download/{code}"

    async def download(self, code: str, requested_file: str | None = None) -> FileGroup | BlobDownload:
        """Return the group listing, or an open handle to one of its files."""
        group = await self.registry.lookup(code)
        if requested_file is None:
            return group

        stored = group.find(requested_file)
        if stored is None:
            raise InvalidFileReference()
        try:
            handle = await self.storage.open(stored.content_path)
        except BlobMissing:
            await self._raise_if_gone(group)
            raise
        logger.info("Download %s: %s", group.code, stored.storage_name)
        return BlobDownload(file=stored, handle=handle)

    async def _raise_if_gone(self, group: FileGroup) -> None:
        # The group may have been purged between lookup and open
        if await self.registry.get(group.code) is None:
            if group.is_expired(self.registry.clock()):
                raise ExpiredError()
            raise NotFoundError()
        await self.registry.lookup(group.code)
