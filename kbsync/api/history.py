"""
Upload history and webhook diagnostics API endpoints
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from kbsync.core.dependencies import get_current_user
from kbsync.database import get_db
from kbsync.repositories.upload_log_repository import (
    UploadHistoryRepository,
    WebhookResponseRepository
)
from kbsync.schemas.auth import CurrentUser
from kbsync.schemas.history import (
    UploadHistoryList,
    UploadHistoryResponse,
    WebhookResponseEntry,
    WebhookResponseList
)

router = APIRouter()


@router.get("/uploads", response_model=UploadHistoryList)
async def list_upload_history(
    limit: int = Query(50, ge=1, le=200, description="Maximum entries"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> UploadHistoryList:
    """
    Recent upload attempts, newest first.

    Failed attempts that were compensated carry "Rolled back" in
    ``error_message``.
    """
    rows = await UploadHistoryRepository(db).list_for_user(current_user.id, limit=limit)
    return UploadHistoryList(
        entries=[UploadHistoryResponse.model_validate(row) for row in rows],
        total=len(rows)
    )


@router.get("/webhooks", response_model=WebhookResponseList)
async def list_webhook_responses(
    file_id: Optional[UUID] = Query(None, description="Only calls for this file"),
    limit: int = Query(50, ge=1, le=200, description="Maximum entries"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> WebhookResponseList:
    rows = await WebhookResponseRepository(db).list_for_user(
        current_user.id, file_id=file_id, limit=limit
    )
    return WebhookResponseList(
        entries=[WebhookResponseEntry.model_validate(row) for row in rows],
        total=len(rows)
    )
