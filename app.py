"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from api.v1 import api_v1
from config import AppSettings
from errors import register_error_handlers
from infrastructure.email.zeptomail import ZeptoMailProvider
from repositories.user_repository import UserRepository
from repositories.workspace_repository import WorkspaceRepository
from routes.health_routes import router as health_router
from services.client_context import ClientRegistry, make_context_factory
from services.login_links import LoginLinkService
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def register_routes(app: FastAPI) -> None:
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(api_v1)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(settings.db.mongodb_uri)
        db = mongo_client[settings.db.db_name]
        http_client = httpx.AsyncClient(timeout=5.0)

        users = UserRepository(db)
        workspaces = WorkspaceRepository(db)
        await users.ensure_indexes()

        email_provider = ZeptoMailProvider(
            settings.email, http_client, app_name=settings.app_name
        )
        login_links = LoginLinkService(
            users,
            email_provider,
            app_url=settings.app_url,
            ttl_seconds=settings.access.login_token_ttl_seconds,
        )
        registry = ClientRegistry(
            make_context_factory(users, workspaces, login_links, settings.access)
        )

        app.state.settings = settings
        app.state.mongo_client = mongo_client
        app.state.db = db
        app.state.users = users
        app.state.workspaces = workspaces
        app.state.login_links = login_links
        app.state.registry = registry

        log.info(
            "app_started",
            env=settings.env,
            workspace_id=settings.access.workspace_id,
            allowed_users=len(settings.access.allowed_email_list),
            session_duration_ms=settings.access.session_duration_ms,
        )

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await registry.close_all()
        await http_client.aclose()
        await mongo_client.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)

    return app
