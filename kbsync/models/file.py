"""
File model for documents committed to object storage
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import String, DateTime, BigInteger
from sqlalchemy.dialects.postgresql import UUID as PostgresUUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from kbsync.database import Base


class FileRecord(Base):
    """Metadata row for a file whose bytes live at ``storage_path``."""

    __tablename__ = "files"

    # Primary key (same id as the upload task that created it)
    id: Mapped[UUID] = mapped_column(
        PostgresUUID(as_uuid=True),
        primary_key=True
    )

    # File details
    file_name: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    size: Mapped[Optional[int]] = mapped_column(BigInteger)
    mime_type: Mapped[Optional[str]] = mapped_column(String(255))
    storage_path: Mapped[str] = mapped_column(String(1000), nullable=False, unique=True)

    # Ownership
    user_id: Mapped[UUID] = mapped_column(
        PostgresUUID(as_uuid=True),
        nullable=False,
        index=True
    )

    # Timestamps
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<FileRecord(id={self.id}, file_name='{self.file_name}', storage_path='{self.storage_path}')>"
