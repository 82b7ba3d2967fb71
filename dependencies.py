"""
FastAPI dependency providers.

Protected routes depend on require_session (a client context with a live
session) and, for workspace routes, require_workspace (the shared workspace
loaded for an allowed user, re-read on every request so partner writes show).
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request

from config import AppSettings
from errors import SessionExpiredError, WorkspaceUnavailableError
from repositories.user_repository import UserRepository
from services.client_context import ClientContext, ClientRegistry
from services.login_links import LoginLinkService
from services.workspace_coordinator import WorkspaceCoordinator


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


async def get_db(request: Request):
    """Return the async MongoDB database from app.state."""
    return request.app.state.db


def get_registry(request: Request) -> ClientRegistry:
    return request.app.state.registry


def get_users(request: Request) -> UserRepository:
    return request.app.state.users


def get_login_links(request: Request) -> LoginLinkService:
    return request.app.state.login_links


def get_client_id(request: Request) -> Optional[str]:
    settings: AppSettings = request.app.state.settings
    return request.cookies.get(settings.access.client_cookie_name)


async def get_optional_context(
    client_id: Optional[str] = Depends(get_client_id),
    registry: ClientRegistry = Depends(get_registry),
) -> Optional[ClientContext]:
    return registry.get(client_id)


async def require_session(
    context: Optional[ClientContext] = Depends(get_optional_context),
) -> ClientContext:
    if context is None or context.authority.identity is None:
        raise SessionExpiredError("Please sign in.")
    if not context.authority.is_session_valid():
        await context.authority.sign_out()
        raise SessionExpiredError("Your session has expired. Please sign in again.")
    return context


async def require_workspace(
    context: ClientContext = Depends(require_session),
) -> WorkspaceCoordinator:
    coordinator = context.coordinator
    if coordinator.workspace is not None:
        await coordinator.refresh()
    if coordinator.workspace is None and not coordinator.is_loading:
        await coordinator.initialize(context.authority.identity)
    if not coordinator.is_allowed_user:
        raise WorkspaceUnavailableError("You don't have access to this workspace.")
    if coordinator.workspace is None:
        raise WorkspaceUnavailableError("The workspace could not be loaded. Please try again.")
    return coordinator
