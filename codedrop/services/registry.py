"""
File registry — maps a share code to an immutable group of stored files.

Every mutation is a single atomic operation on the backing store (one
transaction or one key), so concurrent lookups, lazy expiry and the reaper
coordinate without in-process locks.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from codedrop.exceptions import DuplicateCodeError, ExpiredError, NotFoundError
from codedrop.models.file_group import FileGroupRecord, StoredFileRecord
from codedrop.services.types import FileGroup, StoredFile, as_utc, utcnow
from codedrop.utils.codes import CodeGenerator, normalize_code
from codedrop.utils.storage import LocalStorage

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class FileRegistry(ABC):
    def __init__(
        self,
        storage: LocalStorage,
        code_generator: CodeGenerator | None = None,
        clock: Clock = utcnow,
    ):
        self.storage = storage
        self.code_generator = code_generator or CodeGenerator()
        self.clock = clock

    # ── Backend primitives ───────────────────────────────

    @abstractmethod
    async def _insert(self, group: FileGroup) -> None:
        """Persist the whole group at once; raise DuplicateCodeError if the code is taken."""

    @abstractmethod
    async def get(self, code: str) -> FileGroup | None:
        """Raw read by code, no expiry handling."""

    @abstractmethod
    async def delete(self, code: str) -> bool:
        """Delete-if-exists. Returns True only for the caller that removed the entry."""

    @abstractmethod
    async def list_expired(self, cutoff: datetime) -> list[FileGroup]:
        """Groups whose expiry is earlier than ``cutoff``."""

    @abstractmethod
    async def storage_names(self) -> set[str]:
        """Storage names referenced by any registered group, expired or not."""

    # ── Operations ───────────────────────────────────────

    async def create_group(self, files: Sequence[StoredFile], ttl: timedelta) -> FileGroup:
        if not files:
            raise ValueError("A file group needs at least one file")
        now = self.clock()
        group = FileGroup(
            code=normalize_code(self.code_generator.generate()),
            files=tuple(files),
            created_at=now,
            expires_at=now + ttl,
        )
        await self._insert(group)
        logger.info("Registered group %s with %d file(s)", group.code, len(group.files))
        return group

    async def lookup(self, code: str) -> FileGroup:
        """Resolve a live group, purging it on the spot if it has expired."""
        group = await self.get(normalize_code(code))
        if group is None:
            raise NotFoundError()
        if group.is_expired(self.clock()):
            await self.purge(group)
            raise ExpiredError()
        return group

    async def purge(self, group: FileGroup) -> bool:
        """Delete every blob of the group, then its registry entry."""
        for stored in group.files:
            await self.storage.delete(stored.content_path)
        removed = await self.delete(group.code)
        if removed:
            logger.info("Purged group %s", group.code)
        return removed

    async def close(self) -> None:
        pass


class SqlFileRegistry(FileRegistry):
    """Registry backed by the ``file_groups`` / ``stored_files`` tables."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage: LocalStorage,
        code_generator: CodeGenerator | None = None,
        clock: Clock = utcnow,
    ):
        super().__init__(storage, code_generator, clock)
        self.session_factory = session_factory

    async def _insert(self, group: FileGroup) -> None:
        record = FileGroupRecord(
            code=group.code,
            created_at=group.created_at,
            expires_at=group.expires_at,
            files=[
                StoredFileRecord(
                    storage_name=f.storage_name,
                    position=i,
                    original_name=f.original_name,
                    size_bytes=f.size_bytes,
                    mime_type=f.mime_type,
                )
                for i, f in enumerate(group.files)
            ],
        )
        async with self.session_factory() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateCodeError(f"Code {group.code} is already registered") from e

    async def get(self, code: str) -> FileGroup | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(FileGroupRecord).where(FileGroupRecord.code == code)
            )
            record = result.scalar_one_or_none()
            return _to_group(record) if record else None

    async def delete(self, code: str) -> bool:
        async with self.session_factory() as session:
            await session.execute(delete(StoredFileRecord).where(StoredFileRecord.group_code == code))
            result = await session.execute(delete(FileGroupRecord).where(FileGroupRecord.code == code))
            await session.commit()
            return result.rowcount > 0

    async def list_expired(self, cutoff: datetime) -> list[FileGroup]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(FileGroupRecord)
                .where(FileGroupRecord.expires_at < cutoff)
                .order_by(FileGroupRecord.expires_at)
            )
            return [_to_group(r) for r in result.scalars()]

    async def storage_names(self) -> set[str]:
        async with self.session_factory() as session:
            result = await session.execute(select(StoredFileRecord.storage_name))
            return set(result.scalars())


def _to_group(record: FileGroupRecord) -> FileGroup:
    return FileGroup(
        code=record.code,
        files=tuple(
            StoredFile(
                storage_name=f.storage_name,
                original_name=f.original_name,
                size_bytes=f.size_bytes,
                mime_type=f.mime_type,
            )
            for f in record.files
        ),
        created_at=as_utc(record.created_at),
        expires_at=as_utc(record.expires_at),
    )
