"""
Audit logging for user-initiated file operations
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kbsync.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

FILE_DELETED = "file_deleted"
FILE_RENAMED = "file_renamed"


class AuditService:
    """Writes ``audit_logs`` rows. Failures are logged, never raised."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        event_type: str,
        user_id: Optional[UUID],
        event_details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> None:
        try:
            self.db.add(AuditLog(
                user_id=user_id,
                event_type=event_type,
                event_details=event_details,
                ip_address=ip_address,
                user_agent=user_agent
            ))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to create audit log ({event_type}): {e}")
