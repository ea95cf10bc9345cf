"""
Pydantic schemas for the Knowledge Base File Sync API
"""

from kbsync.schemas.auth import CurrentUser, TokenData
from kbsync.schemas.file import FileListResponse, FilePreview, FileRecordResponse, FileRename
from kbsync.schemas.history import (
    UploadHistoryList,
    UploadHistoryResponse,
    WebhookResponseEntry,
    WebhookResponseList
)
from kbsync.schemas.upload import (
    EnqueueResponse,
    ErrorDetails,
    HistoryStatus,
    QueueResponse,
    RejectedFile,
    UploadStatus,
    UploadTask,
    UploadTaskResponse
)
from kbsync.schemas.webhook import UploadNotification, WebhookOutcome

__all__ = [
    "CurrentUser",
    "TokenData",
    "FileListResponse",
    "FilePreview",
    "FileRecordResponse",
    "FileRename",
    "UploadHistoryList",
    "UploadHistoryResponse",
    "WebhookResponseEntry",
    "WebhookResponseList",
    "EnqueueResponse",
    "ErrorDetails",
    "HistoryStatus",
    "QueueResponse",
    "RejectedFile",
    "UploadStatus",
    "UploadTask",
    "UploadTaskResponse",
    "UploadNotification",
    "WebhookOutcome"
]
