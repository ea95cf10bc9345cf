"""
Upload history model, the audit trail of upload attempts
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, Text, DateTime, Integer, BigInteger, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID as PostgresUUID
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from kbsync.database import Base


class FileUploadHistory(Base):
    """One row per upload task, updated in place as its attempts conclude."""

    __tablename__ = "file_upload_history"
    __table_args__ = (
        UniqueConstraint("file_id", "user_id", name="uq_file_upload_history_file_user"),
    )

    # Primary key
    id: Mapped[UUID] = mapped_column(
        PostgresUUID(as_uuid=True),
        primary_key=True,
        default=uuid4
    )

    file_id: Mapped[UUID] = mapped_column(PostgresUUID(as_uuid=True), nullable=False, index=True)
    user_id: Mapped[UUID] = mapped_column(PostgresUUID(as_uuid=True), nullable=False, index=True)

    # File details
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[Optional[int]] = mapped_column(BigInteger)
    mime_type: Mapped[Optional[str]] = mapped_column(String(255))

    # Status tracking: pending, uploading, success, failed
    upload_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    webhook_url: Mapped[Optional[str]] = mapped_column(String(1000))
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<FileUploadHistory(file_id={self.file_id}, upload_status='{self.upload_status}', retry_count={self.retry_count})>"
