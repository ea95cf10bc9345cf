"""
Pydantic schemas for upload tasks and the upload queue
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class UploadStatus(str, Enum):
    """Client-side task state."""

    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"


class HistoryStatus(str, Enum):
    """Durable ``file_upload_history.upload_status`` values."""

    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCESS = "success"
    FAILED = "failed"


class ErrorDetails(BaseModel):
    """Failure context shown inline on a task row."""

    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status_code: Optional[int] = None
    response_body: Optional[Any] = None
    rollback_warnings: List[str] = Field(default_factory=list)


class UploadTask(BaseModel):
    """A file selected for upload, tracked in memory until it succeeds or is removed."""

    id: UUID
    file_name: str
    size: int
    mime_type: str
    content: bytes = Field(default=b"", repr=False, exclude=True)
    status: UploadStatus = UploadStatus.PENDING
    progress: int = 0
    attempt: int = 0
    message: str = ""
    storage_path: Optional[str] = None
    error_details: Optional[ErrorDetails] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class UploadTaskResponse(BaseModel):
    """Schema for a task in API responses."""

    id: UUID
    file_name: str
    size: int
    mime_type: str
    status: UploadStatus
    progress: int
    attempt: int
    message: str
    storage_path: Optional[str] = None
    error_details: Optional[ErrorDetails] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RejectedFile(BaseModel):
    """Schema for a file that failed validation."""

    file_name: str
    reason: str
    code: str


class EnqueueResponse(BaseModel):
    """Schema for the result of adding files to the queue."""

    accepted: List[UploadTaskResponse] = Field(default_factory=list)
    rejected: List[RejectedFile] = Field(default_factory=list)


class QueueResponse(BaseModel):
    """Schema for the current queue."""

    tasks: List[UploadTaskResponse]
    total: int


class HealthCheck(BaseModel):
    """Schema for health check response."""

    status: str = "healthy"
    timestamp: datetime
    version: str = "1.0.0"
    database_connected: bool = True
    storage_configured: bool = True


class ApiInfo(BaseModel):
    """Schema for API information."""

    name: str = "Knowledge Base File Sync API"
    version: str = "1.0.0"
    description: str = "Upload data files to object storage and sync them to the knowledge base"
    endpoints: dict = {
        "uploads": "/api/v1/uploads",
        "files": "/api/v1/files",
        "history": "/api/v1/history",
        "health": "/api/v1/health",
        "docs": "/docs"
    }
