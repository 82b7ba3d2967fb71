"""
Per-client state held by the server.

Each browser/device gets its own ClientContext: an identity provider, a
Session Authority and a Workspace Coordinator wired together so the
coordinator loads the workspace whenever a session starts and drops it when
the session ends. Contexts are found by an opaque random cookie value.

The registry is in-process memory; a restart signs every client out.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from config import AccessSettings
from infrastructure.identity.local import LocalIdentityProvider
from infrastructure.identity.protocol import IdentityProvider
from repositories.user_repository import UserRepository
from repositories.workspace_repository import WorkspaceRepository
from services.login_links import LoginLinkService
from services.session_authority import SessionAuthority
from services.workspace_coordinator import WorkspaceCoordinator
from shared.datetime_utils import Clock, now_ms
from shared.generators import generate_secure_token
from shared.logging import get_logger

log = get_logger(__name__)

# Contexts with no live session are dropped after this long without use
IDLE_CONTEXT_TTL_MS = 24 * 60 * 60 * 1000


@dataclass
class ClientContext:
    client_id: str
    identity_provider: IdentityProvider
    authority: SessionAuthority
    coordinator: WorkspaceCoordinator
    last_seen: int = field(default=0)

    async def start(self) -> None:
        self.authority.on_session_change(self.coordinator.on_session_change)
        await self.authority.start()

    async def close(self) -> None:
        await self.authority.close()
        self.coordinator.reset()


ContextFactory = Callable[[str], ClientContext]


class ClientRegistry:
    def __init__(self, factory: ContextFactory, clock: Clock = now_ms) -> None:
        self._factory = factory
        self._clock = clock
        self._contexts: dict[str, ClientContext] = {}

    def __len__(self) -> int:
        return len(self._contexts)

    def get(self, client_id: Optional[str]) -> Optional[ClientContext]:
        if not client_id:
            return None
        context = self._contexts.get(client_id)
        if context is not None:
            context.last_seen = self._clock()
        return context

    async def create(self) -> ClientContext:
        await self.prune_idle()
        client_id = generate_secure_token()
        context = self._factory(client_id)
        context.last_seen = self._clock()
        await context.start()
        self._contexts[client_id] = context
        log.info("client_context_created", active_contexts=len(self._contexts))
        return context

    async def get_or_create(self, client_id: Optional[str]) -> ClientContext:
        return self.get(client_id) or await self.create()

    async def discard(self, client_id: Optional[str]) -> None:
        context = self._contexts.pop(client_id, None) if client_id else None
        if context is not None:
            await context.close()

    async def prune_idle(self) -> int:
        cutoff = self._clock() - IDLE_CONTEXT_TTL_MS
        stale = [
            cid
            for cid, ctx in self._contexts.items()
            if ctx.last_seen < cutoff and not ctx.authority.is_session_valid()
        ]
        for cid in stale:
            await self.discard(cid)
        if stale:
            log.info("client_contexts_pruned", count=len(stale))
        return len(stale)

    async def close_all(self) -> None:
        for cid in list(self._contexts):
            await self.discard(cid)


def make_context_factory(
    users: UserRepository,
    workspaces: WorkspaceRepository,
    login_links: LoginLinkService,
    access: AccessSettings,
    clock: Clock = now_ms,
) -> ContextFactory:
    """Build ClientContexts backed by the Mongo identity provider."""

    def factory(client_id: str) -> ClientContext:
        provider = LocalIdentityProvider(users, login_links)
        authority = SessionAuthority(provider, users, access, login_links, clock=clock)
        coordinator = WorkspaceCoordinator(workspaces, users, access, clock=clock)
        return ClientContext(client_id, provider, authority, coordinator)

    return factory
