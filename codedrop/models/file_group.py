"""File group ORM models — one row per share code, one row per stored blob."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from codedrop.db.base import Base


class FileGroupRecord(Base):
    __tablename__ = "file_groups"

    code: Mapped[str] = mapped_column(String(16), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    files = relationship(
        "StoredFileRecord",
        back_populates="group",
        order_by="StoredFileRecord.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class StoredFileRecord(Base):
    __tablename__ = "stored_files"

    storage_name: Mapped[str] = mapped_column(String(255), primary_key=True)
    group_code: Mapped[str] = mapped_column(
        String(16), ForeignKey("file_groups.code", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0)
    mime_type: Mapped[str | None] = mapped_column(String(255), nullable=True)

    group = relationship("FileGroupRecord", back_populates="files")
