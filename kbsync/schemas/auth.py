"""
Authentication schemas for tokens issued by the auth provider
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class TokenData(BaseModel):
    """Token payload data."""

    user_id: UUID
    email: str = ""


class CurrentUser(BaseModel):
    """The authenticated caller, with the role read from ``user_roles``."""

    id: UUID
    email: str = ""
    role: Optional[str] = None
