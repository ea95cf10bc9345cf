"""
Record service: metadata, history and webhook-response writes for the upload workflow
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Set
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kbsync.core.exceptions import RecordWriteError
from kbsync.repositories.file_repository import FileRepository
from kbsync.repositories.upload_log_repository import (
    UploadHistoryRepository,
    WebhookResponseRepository
)
from kbsync.schemas.upload import HistoryStatus, UploadTask

logger = logging.getLogger(__name__)


class RecordService:
    """
    Relational writes for the upload workflow.

    Every call runs in its own short-lived session and commits before
    returning, so concurrent upload pipelines never share a session and each
    audit row is durable as soon as the call returns.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def list_file_names(self, user_id: UUID) -> Set[str]:
        """Names of the user's stored files."""
        try:
            async with self.session_factory() as db:
                return await FileRepository(db).list_names(user_id)
        except SQLAlchemyError as e:
            raise RecordWriteError(f"Failed to load stored files: {str(e)}") from e

    async def start_history(
        self,
        task: UploadTask,
        user_id: UUID,
        webhook_url: str,
        retry_count: int = 0
    ) -> None:
        """Write the ``pending`` history row for a new attempt."""
        try:
            async with self.session_factory() as db:
                await UploadHistoryRepository(db).start_attempt(
                    file_id=task.id,
                    user_id=user_id,
                    file_name=task.file_name,
                    file_size=task.size,
                    mime_type=task.mime_type,
                    webhook_url=webhook_url,
                    retry_count=retry_count
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise RecordWriteError(f"Failed to create upload history: {str(e)}") from e

    async def update_history(
        self,
        file_id: UUID,
        user_id: UUID,
        status: HistoryStatus,
        error_message: Optional[str] = None,
        retry_count: Optional[int] = None
    ) -> None:
        """
        Update the attempt's history row.

        ``completed_at`` is stamped when the status is ``success`` or ``failed``.
        """
        values: dict = {"upload_status": status.value}
        if error_message is not None:
            values["error_message"] = error_message
        if retry_count is not None:
            values["retry_count"] = retry_count
        if status in (HistoryStatus.SUCCESS, HistoryStatus.FAILED):
            values["completed_at"] = datetime.now(timezone.utc)

        try:
            async with self.session_factory() as db:
                await UploadHistoryRepository(db).update_attempt(file_id, user_id, values)
                await db.commit()
        except SQLAlchemyError as e:
            raise RecordWriteError(f"Failed to update upload history: {str(e)}") from e

    async def upsert_file(self, task: UploadTask, storage_path: str, user_id: UUID) -> None:
        """Insert the ``files`` row, idempotent on the task id."""
        try:
            async with self.session_factory() as db:
                await FileRepository(db).upsert(
                    file_id=task.id,
                    file_name=task.file_name,
                    size=task.size,
                    mime_type=task.mime_type,
                    storage_path=storage_path,
                    user_id=user_id
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise RecordWriteError(f"Database insert failed: {str(e)}") from e

    async def delete_file(self, file_id: UUID) -> bool:
        """Delete the ``files`` row; returns whether a row was removed."""
        try:
            async with self.session_factory() as db:
                removed = await FileRepository(db).delete_by_id(file_id)
                await db.commit()
                return removed > 0
        except SQLAlchemyError as e:
            raise RecordWriteError(f"Failed to delete database record: {str(e)}") from e

    async def record_webhook_response(
        self,
        task: UploadTask,
        user_id: UUID,
        webhook_url: str,
        status_code: Optional[int],
        response_body: Optional[Any],
        error_message: Optional[str],
        retry_count: int,
        success: bool
    ) -> None:
        """Append a ``webhook_responses`` row."""
        try:
            async with self.session_factory() as db:
                WebhookResponseRepository(db).add(
                    user_id=user_id,
                    file_id=task.id,
                    file_name=task.file_name,
                    file_size=task.size,
                    mime_type=task.mime_type,
                    webhook_url=webhook_url,
                    status_code=status_code,
                    response_body=response_body,
                    error_message=error_message,
                    retry_count=retry_count,
                    success=success
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise RecordWriteError(f"Failed to record webhook response: {str(e)}") from e
