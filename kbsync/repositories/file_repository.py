"""
File repository for database operations on ``files``
"""

from typing import List, Optional, Set
from uuid import UUID

from sqlalchemy import and_, delete, desc, func, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from kbsync.models.file import FileRecord


class FileRepository:
    """Repository for stored file metadata."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for_user(self, user_id: UUID) -> List[FileRecord]:
        """
        Get the user's files, newest first.

        Args:
            user_id: Owner id

        Returns:
            List of file records
        """
        query = select(FileRecord).where(
            FileRecord.user_id == user_id
        ).order_by(desc(FileRecord.created_at))

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_names(self, user_id: UUID) -> Set[str]:
        """Names of all files the user has stored."""
        query = select(FileRecord.file_name).where(
            and_(
                FileRecord.user_id == user_id,
                FileRecord.file_name.is_not(None)
            )
        )
        result = await self.db.execute(query)
        return set(result.scalars().all())

    async def get_by_id(self, file_id: UUID, user_id: UUID) -> Optional[FileRecord]:
        """
        Get file by ID for specific user.

        Args:
            file_id: File ID
            user_id: User ID to ensure ownership

        Returns:
            FileRecord if found and owned by user, None otherwise
        """
        query = select(FileRecord).where(
            and_(
                FileRecord.id == file_id,
                FileRecord.user_id == user_id
            )
        )

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        file_id: UUID,
        file_name: str,
        size: int,
        mime_type: str,
        storage_path: str,
        user_id: UUID
    ) -> None:
        """
        Insert the metadata row, or overwrite it when a retry reuses the id.

        Does not commit.
        """
        values = dict(
            id=file_id,
            file_name=file_name,
            size=size,
            mime_type=mime_type,
            storage_path=storage_path,
            user_id=user_id
        )
        stmt = pg_insert(FileRecord).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[FileRecord.id],
            set_={
                "file_name": stmt.excluded.file_name,
                "size": stmt.excluded.size,
                "mime_type": stmt.excluded.mime_type,
                "storage_path": stmt.excluded.storage_path,
                "updated_at": func.now()
            }
        )
        await self.db.execute(stmt)

    async def delete_by_id(self, file_id: UUID) -> int:
        """Delete the row; returns the number of rows removed. Does not commit."""
        result = await self.db.execute(
            delete(FileRecord).where(FileRecord.id == file_id)
        )
        return result.rowcount or 0

    async def rename(self, file_id: UUID, user_id: UUID, file_name: str) -> Optional[FileRecord]:
        """
        Change the display name of a stored file. The caller commits.

        Returns:
            Updated record, or None if not found for this user
        """
        file = await self.get_by_id(file_id, user_id)
        if not file:
            return None

        await self.db.execute(
            update(FileRecord)
            .where(FileRecord.id == file_id)
            .values(file_name=file_name, updated_at=func.now())
        )
        return file
