"""
Pydantic schemas for knowledge base webhook calls
"""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class UploadNotification(BaseModel):
    """Metadata posted alongside the file bytes to the upload webhook."""

    file_id: UUID
    file_name: str
    file_size: int
    mime_type: str
    uploaded_at: datetime
    storage_path: str
    bucket_name: str
    user_id: UUID
    user_email: str = ""
    user_role: Optional[str] = None

    def form_fields(self) -> Dict[str, str]:
        """Multipart form fields, using the webhook's camelCase names."""
        fields = {
            "fileId": str(self.file_id),
            "fileName": self.file_name,
            "fileSize": str(self.file_size),
            "mimeType": self.mime_type,
            "uploadedAt": self.uploaded_at.isoformat(),
            "storagePath": self.storage_path,
            "bucketName": self.bucket_name,
            "userId": str(self.user_id),
            "userEmail": self.user_email,
        }
        if self.user_role:
            fields["userRole"] = self.user_role
        return fields


class WebhookOutcome(BaseModel):
    """What the webhook answered."""

    status_code: int
    ok: bool
    body: Optional[Any] = Field(None, description="Parsed JSON body, if the response was JSON")
    text: str = ""

    @property
    def detail(self) -> Any:
        return self.body if self.body is not None else self.text
