"""
Pydantic schemas for stored files
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class FileRecordResponse(BaseModel):
    """Schema for a stored file."""

    id: UUID
    file_name: Optional[str] = None
    size: Optional[int] = None
    mime_type: Optional[str] = None
    storage_path: str
    user_id: UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FileListResponse(BaseModel):
    """Schema for the stored file list."""

    files: List[FileRecordResponse]
    total_count: int


class FileRename(BaseModel):
    """Schema for renaming a stored file."""

    file_name: str = Field(..., min_length=1, max_length=255, description="New display name")

    @field_validator("file_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("File name cannot be empty")
        return v


class FilePreview(BaseModel):
    """Schema for text preview of a stored file."""

    id: UUID
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    content: str
