"""
Repositories for the upload audit trail and webhook diagnostics
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import and_, desc, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from kbsync.models.upload_history import FileUploadHistory
from kbsync.models.webhook_response import WebhookResponse


class UploadHistoryRepository:
    """Repository for ``file_upload_history``."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def start_attempt(
        self,
        file_id: UUID,
        user_id: UUID,
        file_name: str,
        file_size: int,
        mime_type: str,
        webhook_url: str,
        retry_count: int = 0
    ) -> None:
        """
        Create the history row as ``pending``, or reset it for a new attempt.

        Does not commit.
        """
        stmt = pg_insert(FileUploadHistory).values(
            file_id=file_id,
            user_id=user_id,
            file_name=file_name,
            file_size=file_size,
            mime_type=mime_type,
            upload_status="pending",
            webhook_url=webhook_url,
            retry_count=retry_count
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[FileUploadHistory.file_id, FileUploadHistory.user_id],
            set_={
                "upload_status": "pending",
                "retry_count": stmt.excluded.retry_count,
                "webhook_url": stmt.excluded.webhook_url,
                "error_message": None,
                "completed_at": None
            }
        )
        await self.db.execute(stmt)

    async def update_attempt(self, file_id: UUID, user_id: UUID, values: Dict[str, Any]) -> None:
        """Update the row in place. Does not commit."""
        await self.db.execute(
            update(FileUploadHistory)
            .where(
                and_(
                    FileUploadHistory.file_id == file_id,
                    FileUploadHistory.user_id == user_id
                )
            )
            .values(**values)
        )

    async def list_for_user(self, user_id: UUID, limit: int = 50) -> List[FileUploadHistory]:
        query = select(FileUploadHistory).where(
            FileUploadHistory.user_id == user_id
        ).order_by(desc(FileUploadHistory.created_at)).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())


class WebhookResponseRepository:
    """Repository for ``webhook_responses``."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def add(
        self,
        user_id: UUID,
        file_id: UUID,
        file_name: str,
        file_size: Optional[int],
        mime_type: Optional[str],
        webhook_url: str,
        status_code: Optional[int],
        response_body: Optional[Any],
        error_message: Optional[str],
        retry_count: int,
        success: bool
    ) -> WebhookResponse:
        """Stage a new response row. Does not commit."""
        entry = WebhookResponse(
            user_id=user_id,
            file_id=file_id,
            file_name=file_name,
            file_size=file_size,
            mime_type=mime_type,
            webhook_url=webhook_url,
            status_code=status_code,
            response_body=response_body,
            error_message=error_message,
            retry_count=retry_count,
            success=success
        )
        self.db.add(entry)
        return entry

    async def list_for_user(
        self,
        user_id: UUID,
        file_id: Optional[UUID] = None,
        limit: int = 50
    ) -> List[WebhookResponse]:
        query = select(WebhookResponse).where(WebhookResponse.user_id == user_id)
        if file_id:
            query = query.where(WebhookResponse.file_id == file_id)
        query = query.order_by(desc(WebhookResponse.created_at)).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())
