"""
User document model.

Maps to the `users` MongoDB collection, keyed by the user id.

Session state is mirrored here: ``sessionExpiry`` (epoch ms, None when signed
out). The one-time login link lives in ``loginToken`` (SHA-256 of the emailed
token), ``loginTokenExpiry`` (epoch ms) and ``loginTokenUsed``.
``loginHistory`` only ever grows.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from schemas.models.base import CamelModel, MongoBaseModel, PyObjectId

RECENT_LOGIN_LIMIT = 5


class LoginHistoryEntry(CamelModel):
    """One successful sign-in."""

    timestamp: datetime
    user_agent: Optional[str] = None


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection."""

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    email: str
    password_hash: Optional[str] = None
    email_verified_at: Optional[datetime] = None
    session_expiry: Optional[int] = None
    login_token: Optional[str] = None
    login_token_expiry: Optional[int] = None
    login_token_used: bool = False
    login_history: list[LoginHistoryEntry] = []
    workspace_id: Optional[str] = None
    last_login: Optional[datetime] = None
    last_logout: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def uid(self) -> str:
        return str(self.id)

    @property
    def email_verified(self) -> bool:
        return self.email_verified_at is not None

    def recent_logins(self, limit: int = RECENT_LOGIN_LIMIT) -> list[LoginHistoryEntry]:
        """Most recent *limit* sign-ins, newest first."""
        return list(reversed(self.login_history[-limit:])) if limit > 0 else []
