"""
FastAPI dependencies for authentication and service wiring
"""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from kbsync.database import AsyncSessionLocal, get_db
from kbsync.schemas.auth import CurrentUser
from kbsync.services.auth import AuthService
from kbsync.services.file_service import FileService
from kbsync.services.record_service import RecordService
from kbsync.services.storage_service import StorageService
from kbsync.services.upload_pipeline import UploadPipeline
from kbsync.services.upload_queue import UploadQueue, UploadQueueRegistry
from kbsync.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


async def get_current_user(
    token: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> CurrentUser:
    """
    Get current user from authentication token.

    Args:
        token: Bearer token from Authorization header
        db: Database session

    Returns:
        CurrentUser: Current authenticated user with their role

    Raises:
        HTTPException: If authentication fails
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"}
    )

    if not token:
        raise credentials_exception

    token_data = AuthService.verify_token(token.credentials)
    if not token_data:
        raise credentials_exception

    role = await AuthService.get_user_role(db, token_data.user_id)
    return CurrentUser(id=token_data.user_id, email=token_data.email, role=role)


@lru_cache()
def get_storage_service() -> StorageService:
    """
    Shared storage client.

    Raises:
        HTTPException: 503 if storage credentials are missing
    """
    try:
        return StorageService()
    except ValueError as e:
        logger.error(f"Storage not configured: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage not configured. Set AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY and STORAGE_BUCKET_NAME."
        )


@lru_cache()
def get_webhook_service() -> WebhookService:
    return WebhookService()


@lru_cache()
def get_record_service() -> RecordService:
    return RecordService(AsyncSessionLocal)


@lru_cache()
def get_upload_pipeline() -> UploadPipeline:
    return UploadPipeline(
        storage=get_storage_service(),
        records=get_record_service(),
        notifier=get_webhook_service()
    )


@lru_cache()
def get_queue_registry() -> UploadQueueRegistry:
    return UploadQueueRegistry(get_upload_pipeline(), get_record_service())


async def get_upload_queue(
    current_user: CurrentUser = Depends(get_current_user),
    registry: UploadQueueRegistry = Depends(get_queue_registry)
) -> UploadQueue:
    """The caller's upload queue."""
    return registry.get_queue(current_user)


def get_file_service(
    db: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage_service),
    notifier: WebhookService = Depends(get_webhook_service)
) -> FileService:
    return FileService(db, storage, notifier)
