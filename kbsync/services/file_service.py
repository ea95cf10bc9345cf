"""
File service for browsing, previewing, renaming and deleting stored files
"""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from kbsync.config import get_settings
from kbsync.core.exceptions import (
    FileNotFoundInStoreError,
    PreviewNotSupportedError,
    ValidationError,
    WebhookError
)
from kbsync.models.file import FileRecord
from kbsync.repositories.file_repository import FileRepository
from kbsync.schemas.auth import CurrentUser
from kbsync.schemas.file import FilePreview
from kbsync.services.audit_service import FILE_DELETED, FILE_RENAMED, AuditService
from kbsync.services.storage_service import StorageService
from kbsync.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)


class FileService:
    """Service for operations on files that already completed an upload."""

    def __init__(self, db: AsyncSession, storage: StorageService, notifier: WebhookService):
        self.db = db
        self.storage = storage
        self.notifier = notifier
        self.file_repository = FileRepository(db)
        self.audit = AuditService(db)

    async def list_files(self, user_id: UUID) -> List[FileRecord]:
        return await self.file_repository.list_for_user(user_id)

    async def get_file(self, file_id: UUID, user_id: UUID) -> FileRecord:
        """
        Get a stored file owned by the user.

        Raises:
            FileNotFoundInStoreError: If no such file exists for this user
        """
        file = await self.file_repository.get_by_id(file_id, user_id)
        if file is None:
            raise FileNotFoundInStoreError("File not found")
        return file

    async def download(self, file_id: UUID, user_id: UUID) -> Tuple[FileRecord, bytes]:
        """
        Fetch a stored file's bytes.

        Returns:
            The file record and its content
        """
        file = await self.get_file(file_id, user_id)
        content = await self.storage.download_object(file.storage_path)
        return file, content

    async def preview(self, file_id: UUID, user_id: UUID) -> FilePreview:
        """
        Text preview of a stored file.

        Only plain text, JSON and CSV files can be previewed.

        Raises:
            PreviewNotSupportedError: For any other MIME type
        """
        file = await self.get_file(file_id, user_id)
        if file.mime_type not in get_settings().preview_mime_types:
            raise PreviewNotSupportedError(
                "Preview is only available for text, JSON, and CSV files"
            )

        content = await self.storage.download_object(file.storage_path)
        return FilePreview(
            id=file.id,
            file_name=file.file_name,
            mime_type=file.mime_type,
            content=content.decode("utf-8", errors="replace")
        )

    async def rename(
        self,
        file_id: UUID,
        user: CurrentUser,
        file_name: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> FileRecord:
        """
        Change the display name of a stored file.

        The object key keeps the name it was uploaded with; only
        ``files.file_name`` changes.

        Raises:
            FileNotFoundInStoreError: If the file does not exist
            ValidationError: If another stored file already has the name
        """
        file = await self.get_file(file_id, user.id)
        old_name = file.file_name
        if file_name == old_name:
            return file

        taken = await self.file_repository.list_names(user.id)
        if file_name in taken:
            raise ValidationError(
                f"A file named '{file_name}' already exists",
                ValidationError.STORED_DUPLICATE
            )

        renamed = await self.file_repository.rename(file_id, user.id, file_name)
        if renamed is None:
            raise FileNotFoundInStoreError("File not found")
        await self.db.commit()
        await self.db.refresh(renamed)

        logger.info(f"Renamed file {file_id} from {old_name} to {file_name}")
        await self.audit.log(
            FILE_RENAMED,
            user.id,
            {"fileId": str(file_id), "oldName": old_name, "newName": file_name},
            ip_address=ip_address,
            user_agent=user_agent
        )
        return renamed

    async def delete(
        self,
        file_id: UUID,
        user: CurrentUser,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> None:
        """
        Delete a stored file.

        The knowledge base is told first; if it refuses, nothing is removed.
        The object is removed before the row so a failure never leaves a
        row pointing at a missing object.

        Raises:
            FileNotFoundInStoreError: If the file does not exist
            WebhookError: If the delete webhook fails or refuses
            StorageError: If the object could not be removed
        """
        file = await self.get_file(file_id, user.id)

        payload = {
            "fileId": str(file.id),
            "fileName": file.file_name,
            "storagePath": file.storage_path,
            "fileSize": file.size,
            "mimeType": file.mime_type,
            "createdAt": file.created_at.isoformat() if file.created_at else None,
            "updatedAt": file.updated_at.isoformat() if file.updated_at else None,
            "userId": str(user.id),
            "userEmail": user.email,
            "userRole": user.role
        }
        outcome = await self.notifier.send_delete(payload)
        if not outcome.ok:
            raise WebhookError(
                f"Delete failed: {outcome.status_code} - {outcome.text or 'Unknown error'}",
                status_code=outcome.status_code,
                response_body=outcome.detail
            )
        logger.info(f"Delete webhook accepted {file.file_name}: {outcome.detail}")

        await self.storage.remove_objects([file.storage_path])
        await self.file_repository.delete_by_id(file.id)
        await self.db.commit()
        logger.info(f"Deleted file {file.file_name} ({file.id}) for user {user.id}")

        await self.audit.log(
            FILE_DELETED,
            user.id,
            {
                "fileId": str(file.id),
                "fileName": file.file_name,
                "storagePath": file.storage_path,
                "fileSize": file.size
            },
            ip_address=ip_address,
            user_agent=user_agent
        )
