"""
Database models for the Knowledge Base File Sync API
"""

from kbsync.models.audit_log import AuditLog
from kbsync.models.file import FileRecord
from kbsync.models.upload_history import FileUploadHistory
from kbsync.models.user_role import UserRole
from kbsync.models.webhook_response import WebhookResponse

__all__ = ["AuditLog", "FileRecord", "FileUploadHistory", "UserRole", "WebhookResponse"]
