"""
Authentication endpoints.

POST /api/v1/auth/login: sign in, start a session, set the client cookie
POST /api/v1/auth/logout: end the session (idempotent)
GET /api/v1/auth/session: current session, time remaining, recent logins
GET /api/v1/auth/verify-login: consume an emailed verification link
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from config import AppSettings
from dependencies import (
    get_client_id,
    get_login_links,
    get_optional_context,
    get_registry,
    get_settings,
    get_users,
)
from repositories.user_repository import UserRepository
from schemas.dto.requests.auth import LoginRequest
from schemas.dto.responses.auth import LoginHistoryItem, LoginResponse, SessionResponse
from schemas.dto.responses.common import MessageResponse
from services.client_context import ClientContext, ClientRegistry
from services.login_links import LoginLinkService
from shared.datetime_utils import format_time_remaining, now_ms
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    client_id: Optional[str] = Depends(get_client_id),
    registry: ClientRegistry = Depends(get_registry),
    settings: AppSettings = Depends(get_settings),
) -> LoginResponse:
    context = await registry.get_or_create(client_id)
    expiry = await context.authority.sign_in(
        body.email, body.password, user_agent=request.headers.get("user-agent")
    )

    response.set_cookie(
        key=settings.access.client_cookie_name,
        value=context.client_id,
        max_age=settings.access.session_duration_ms // 1000,
        httponly=True,
        secure=settings.access.cookie_secure,
        samesite="lax",
    )

    identity = context.authority.identity
    return LoginResponse(
        user_id=identity.uid,
        email=identity.email,
        session_expiry=expiry,
        time_remaining=format_time_remaining(expiry, now_ms()),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    context: Optional[ClientContext] = Depends(get_optional_context),
    registry: ClientRegistry = Depends(get_registry),
    settings: AppSettings = Depends(get_settings),
) -> MessageResponse:
    if context is not None:
        try:
            await context.authority.sign_out()
        finally:
            await registry.discard(context.client_id)
    response.delete_cookie(settings.access.client_cookie_name)
    return MessageResponse(success=True, message="Signed out.")


@router.get("/session", response_model=SessionResponse)
async def session(
    context: Optional[ClientContext] = Depends(get_optional_context),
    users: UserRepository = Depends(get_users),
) -> SessionResponse:
    if context is None:
        return SessionResponse(session_valid=False)

    authority = context.authority
    identity = authority.identity
    valid = authority.is_session_valid()
    recent: list[LoginHistoryItem] = []
    if valid and identity is not None:
        user = await users.find_by_id(identity.uid)
        if user is not None:
            recent = [LoginHistoryItem.from_entry(e) for e in user.recent_logins()]

    return SessionResponse(
        session_valid=valid,
        user_id=identity.uid if identity else None,
        email=identity.email if identity else None,
        session_expiry=authority.session_expiry,
        time_remaining=format_time_remaining(authority.session_expiry, now_ms()),
        needs_email_verification=authority.needs_email_verification,
        recent_logins=recent,
    )


@router.get("/verify-login", response_model=MessageResponse)
async def verify_login(
    uid: str = "",
    token: str = "",
    login_links: LoginLinkService = Depends(get_login_links),
) -> MessageResponse:
    await login_links.verify(uid, token)
    return MessageResponse(
        success=True,
        message="Email verified successfully! You can now sign in.",
    )
