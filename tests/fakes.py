"""In-memory stand-ins for the object store, the relational store and the
knowledge base webhook, so workflow tests run without Postgres, S3 or a
live webhook.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Dict, List, Optional

from kbsync.core.exceptions import (
    RecordWriteError,
    StorageError,
    StorageObjectNotFoundError,
    StorageVerificationError,
    StorageWriteError
)
from kbsync.schemas.upload import HistoryStatus
from kbsync.schemas.webhook import WebhookOutcome
from kbsync.services.storage_service import storage_object_name


HANG = "hang"


class InMemoryStorage:
    """Object store keyed by storage path."""

    bucket_name = "database-files"

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.calls: List[str] = []
        self.fail_write = False
        self.fail_verify = False
        self.fail_remove = False

    async def upload_object(self, storage_path, content, content_type=None, metadata=None):
        self.calls.append("upload_object")
        if self.fail_write:
            raise StorageWriteError("Storage upload failed: access denied", status_code=403)
        self.objects[storage_path] = content
        return {"storage_path": storage_path}

    async def verify_object(self, user_id, file_id, file_name):
        self.calls.append("verify_object")
        key = f"{user_id}/{storage_object_name(file_id, file_name)}"
        if self.fail_verify or key not in self.objects:
            raise StorageVerificationError("File validation failed: File not found in storage after upload")

    async def remove_objects(self, storage_paths):
        self.calls.append("remove_objects")
        if self.fail_remove:
            raise StorageError("Storage delete failed: bucket unavailable")
        for path in storage_paths:
            self.objects.pop(path, None)

    async def download_object(self, storage_path):
        self.calls.append("download_object")
        if storage_path not in self.objects:
            raise StorageObjectNotFoundError("File not found in storage")
        return self.objects[storage_path]


class InMemoryRecords:
    """``files``, ``file_upload_history`` and ``webhook_responses`` as dicts."""

    def __init__(self):
        self.files: Dict[uuid.UUID, Dict[str, Any]] = {}
        self.history: Dict[tuple, Dict[str, Any]] = {}
        self.responses: List[Dict[str, Any]] = []
        self.calls: List[str] = []
        self.fail_upsert = False
        self.fail_delete = False

    async def list_file_names(self, user_id):
        self.calls.append("list_file_names")
        return {row["file_name"] for row in self.files.values() if row["user_id"] == user_id}

    async def start_history(self, task, user_id, webhook_url, retry_count=0):
        self.calls.append("start_history")
        self.history[(task.id, user_id)] = {
            "file_name": task.file_name,
            "upload_status": HistoryStatus.PENDING.value,
            "webhook_url": webhook_url,
            "retry_count": retry_count,
            "error_message": None,
            "completed_at": None
        }

    async def update_history(self, file_id, user_id, status, error_message=None, retry_count=None):
        self.calls.append("update_history")
        row = self.history[(file_id, user_id)]
        row["upload_status"] = status.value
        if error_message is not None:
            row["error_message"] = error_message
        if retry_count is not None:
            row["retry_count"] = retry_count
        if status in (HistoryStatus.SUCCESS, HistoryStatus.FAILED):
            row["completed_at"] = "now"

    async def upsert_file(self, task, storage_path, user_id):
        self.calls.append("upsert_file")
        if self.fail_upsert:
            raise RecordWriteError("Database insert failed: connection reset")
        self.files[task.id] = {
            "file_name": task.file_name,
            "storage_path": storage_path,
            "user_id": user_id,
            "size": task.size
        }

    async def delete_file(self, file_id):
        self.calls.append("delete_file")
        if self.fail_delete:
            raise RecordWriteError("Failed to delete database record: connection reset")
        return self.files.pop(file_id, None) is not None

    async def record_webhook_response(
        self, task, user_id, webhook_url, status_code, response_body,
        error_message, retry_count, success
    ):
        self.calls.append("record_webhook_response")
        self.responses.append({
            "file_id": task.id,
            "status_code": status_code,
            "response_body": response_body,
            "error_message": error_message,
            "retry_count": retry_count,
            "success": success
        })


def outcome(status_code: int = 200, body: Any = None, text: str = "") -> WebhookOutcome:
    if body is not None and not text:
        text = str(body)
    return WebhookOutcome(
        status_code=status_code,
        ok=200 <= status_code < 300,
        body=body,
        text=text
    )


class ScriptedNotifier:
    """Webhook that answers from a script.

    ``script`` is consumed in order; ``by_name`` holds a separate script per
    file name. An entry may be a WebhookOutcome, an exception to raise, or
    ``HANG`` to never answer. An exhausted script answers 200.
    """

    upload_url = "https://kb.example.test/webhook/databaseupload"
    delete_url = "https://kb.example.test/webhook/delete_file"

    def __init__(self, script: Optional[list] = None, by_name: Optional[Dict[str, list]] = None):
        self.script = list(script or [])
        self.by_name = {name: list(entries) for name, entries in (by_name or {}).items()}
        self.sent: List[Dict[str, str]] = []
        self.deleted: List[Dict[str, Any]] = []

    async def send_upload(self, notification, content):
        self.sent.append(notification.form_fields())
        queue = self.by_name.get(notification.file_name, self.script)
        entry = queue.pop(0) if queue else outcome(200, {"message": "Workflow was started"})
        if entry == HANG:
            await asyncio.sleep(3600)
        if isinstance(entry, Exception):
            raise entry
        return entry

    async def send_delete(self, payload):
        self.deleted.append(payload)
        return outcome(200, {"message": "deleted"})
