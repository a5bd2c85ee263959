"""Upload / download response schemas. Storage paths never appear here."""

from datetime import datetime

from pydantic import Field

from codedrop.schemas.common import CamelModel
from codedrop.services.types import FileGroup, StoredFile
from codedrop.services.transfer_service import UploadResult


class FileEntry(CamelModel):
    storage_id: str
    original_name: str
    size_bytes: int
    mime_type: str | None = None

    @classmethod
    def from_stored(cls, stored: StoredFile) -> "FileEntry":
        return cls(
            storage_id=stored.storage_name,
            original_name=stored.original_name,
            size_bytes=stored.size_bytes,
            mime_type=stored.mime_type,
        )


class UploadResponse(CamelModel):
    code: str
    download_link: str
    qr_image: str = Field(description="PNG data URL of a QR code for download_link")
    expires_at: datetime
    files: list[FileEntry]

    @classmethod
    def from_result(cls, result: UploadResult) -> "UploadResponse":
        return cls(
            code=result.code,
            download_link=result.download_link,
            qr_image=result.qr_image,
            expires_at=result.expires_at,
            files=[FileEntry.from_stored(f) for f in result.files],
        )


class GroupListing(CamelModel):
    code: str
    expires_at: datetime
    files: list[FileEntry]

    @classmethod
    def from_group(cls, group: FileGroup) -> "GroupListing":
        return cls(
            code=group.code,
            expires_at=group.expires_at,
            files=[FileEntry.from_stored(f) for f in group.files],
        )
