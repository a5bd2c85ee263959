"""Value types shared by the blob store, the registry and the transfer service."""

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True)
class StoredFile:
    storage_name: str
    original_name: str
    size_bytes: int
    mime_type: str | None = None

    @property
    def content_path(self) -> str:
        # Opaque handle into the blob store; the local store keys blobs by storage name.
        return self.storage_name


@dataclass(frozen=True)
class FileGroup:
    code: str
    files: tuple[StoredFile, ...]
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now > self.expires_at

    def find(self, storage_name: str) -> StoredFile | None:
        for f in self.files:
            if f.storage_name == storage_name:
                return f
        return None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything is stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
