"""
Authentication service for access tokens issued by the auth provider
"""

import logging
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kbsync.config import get_settings
from kbsync.models.user_role import UserRole
from kbsync.schemas.auth import TokenData

logger = logging.getLogger(__name__)


class AuthService:
    """Verifies session tokens and resolves dashboard roles."""

    @staticmethod
    def verify_token(token: str) -> Optional[TokenData]:
        """
        Verify and decode a JWT access token.

        Args:
            token: JWT token string

        Returns:
            Optional[TokenData]: Token data if valid, None otherwise
        """
        settings = get_settings()
        if not settings.jwt_secret:
            logger.error("JWT_SECRET is not configured; rejecting token")
            return None

        try:
            payload = jwt.decode(
                token,
                settings.jwt_secret,
                algorithms=[settings.jwt_algorithm],
                audience=settings.jwt_audience
            )
        except JWTError as e:
            logger.debug(f"Token rejected: {e}")
            return None

        user_id: Optional[str] = payload.get("sub")
        if user_id is None:
            return None

        try:
            return TokenData(user_id=UUID(user_id), email=payload.get("email") or "")
        except ValueError:
            return None

    @staticmethod
    async def get_user_role(db: AsyncSession, user_id: UUID) -> Optional[str]:
        """
        Get the user's dashboard role.

        Args:
            db: Database session
            user_id: User ID

        Returns:
            Optional[str]: Role name if one is assigned
        """
        result = await db.execute(
            select(UserRole.role).where(UserRole.user_id == user_id)
        )
        return result.scalars().first()
