"""
Pydantic schemas for upload history and webhook diagnostics
"""

from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel


class UploadHistoryResponse(BaseModel):
    """Schema for an upload history row."""

    file_id: UUID
    file_name: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    upload_status: str
    webhook_url: Optional[str] = None
    retry_count: int
    error_message: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WebhookResponseEntry(BaseModel):
    """Schema for a recorded webhook call."""

    id: UUID
    file_id: UUID
    file_name: str
    webhook_url: str
    status_code: Optional[int] = None
    response_body: Optional[Any] = None
    error_message: Optional[str] = None
    retry_count: int
    success: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UploadHistoryList(BaseModel):
    entries: List[UploadHistoryResponse]
    total: int


class WebhookResponseList(BaseModel):
    entries: List[WebhookResponseEntry]
    total: int
