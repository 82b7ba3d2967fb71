"""
Response DTOs for authentication endpoints.

LoginHistoryItem: one entry of SessionResponse.recent_logins
LoginResponse: POST /api/v1/auth/login (200)
SessionResponse: GET /api/v1/auth/session (200)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.user import LoginHistoryEntry


class LoginHistoryItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime
    user_agent: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: LoginHistoryEntry) -> "LoginHistoryItem":
        return cls(timestamp=entry.timestamp, user_agent=entry.user_agent)


class LoginResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str
    email: Optional[str] = None
    session_expiry: int
    time_remaining: str


class SessionResponse(BaseModel):
    """Current client's session as seen by the Session Authority."""

    model_config = ConfigDict(populate_by_name=True)

    session_valid: bool
    user_id: Optional[str] = None
    email: Optional[str] = None
    session_expiry: Optional[int] = None
    time_remaining: str = ""
    needs_email_verification: bool = False
    recent_logins: list[LoginHistoryItem] = []
