"""
Business logic services for the Knowledge Base File Sync API
"""

from kbsync.services.file_service import FileService
from kbsync.services.record_service import RecordService
from kbsync.services.storage_service import StorageService
from kbsync.services.upload_pipeline import UploadPipeline
from kbsync.services.upload_queue import UploadQueue, UploadQueueRegistry
from kbsync.services.webhook_service import WebhookService

__all__ = [
    "FileService",
    "RecordService",
    "StorageService",
    "UploadPipeline",
    "UploadQueue",
    "UploadQueueRegistry",
    "WebhookService"
]
