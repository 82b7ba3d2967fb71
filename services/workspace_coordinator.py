"""
Workspace Coordinator: owns the single shared workspace and its bottle.

initialize() never raises. A user outside the allow-list, or a store failure
while loading, leaves ``workspace`` as None and is reported through
``is_allowed_user`` / ``is_available`` for the caller to render.

The held copy is re-read from the store before every read-modify-write, and
refresh() lets callers pick up writes made by partners since the last load.
Bottle mutations are merge writes on ``bottle.*`` paths and keep the
client-held copy in step with what was written:

    update_bottle_message  message, coordinates, lastMovedAt, replies := []
    move_bottle            lat, lng, lastMovedAt
    reply_to_bottle        replies += [reply]
    delete_bottle_reply    replies -= [reply with id]
"""

from __future__ import annotations

import random
from typing import Optional

from config import AccessSettings
from errors import StoreError
from infrastructure.identity.protocol import Identity
from repositories.user_repository import UserRepository
from repositories.workspace_repository import WorkspaceRepository
from schemas.models.workspace import (
    ANONYMOUS_AUTHOR,
    DEFAULT_WORKSPACE_NAME,
    Bottle,
    BottleReply,
    WorkspaceDoc,
    default_bottle,
)
from shared.datetime_utils import Clock, now_ms, utc_from_clock
from shared.generators import generate_reply_id
from shared.geo import (
    DEFAULT_BOTTLE_LAT,
    DEFAULT_BOTTLE_LNG,
    coerce_coordinate,
    drift_coordinates,
)
from shared.logging import get_logger

log = get_logger(__name__)


class WorkspaceCoordinator:
    def __init__(
        self,
        workspaces: WorkspaceRepository,
        users: UserRepository,
        access: AccessSettings,
        clock: Clock = now_ms,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._workspaces = workspaces
        self._users = users
        self._access = access
        self._clock = clock
        self._rng = rng

        self.workspace: Optional[WorkspaceDoc] = None
        self.is_allowed_user = False
        self.is_loading = False
        self._user: Optional[Identity] = None

    @property
    def workspace_id(self) -> str:
        return self._access.workspace_id

    @property
    def is_available(self) -> bool:
        return self.is_allowed_user and self.workspace is not None

    async def on_session_change(self, identity: Optional[Identity]) -> None:
        """Session listener: load on sign-in, forget everything on sign-out."""
        if identity is None:
            self.reset()
        else:
            await self.initialize(identity)

    def reset(self) -> None:
        self.workspace = None
        self.is_allowed_user = False
        self.is_loading = False
        self._user = None

    async def initialize(self, user: Identity) -> bool:
        """Load (or create) the shared workspace for *user*.

        Returns ``is_available``.
        """
        self.is_loading = True
        self._user = user
        try:
            self.is_allowed_user = self._access.is_allowed(user.email)
            if not self.is_allowed_user:
                log.warning("workspace_user_not_allowed", user_id=user.uid)
                self.workspace = None
                return False

            allowed = self._access.allowed_email_list
            workspace = await self._workspaces.get(self.workspace_id)
            if workspace is None:
                now = utc_from_clock(self._clock)
                workspace = await self._workspaces.create_if_absent(
                    WorkspaceDoc(
                        _id=self.workspace_id,
                        name=DEFAULT_WORKSPACE_NAME,
                        allowed_emails=allowed,
                        bottle=default_bottle(now),
                        created_at=now,
                    )
                )
                log.info("workspace_created", workspace_id=self.workspace_id)
            elif workspace.allowed_emails != allowed:
                await self._workspaces.merge(self.workspace_id, {"allowedEmails": allowed})
                workspace = workspace.model_copy(update={"allowed_emails": allowed})
                log.info("workspace_allow_list_refreshed", workspace_id=self.workspace_id)

            self.workspace = workspace

            await self._users.merge(
                user.uid,
                {
                    "email": user.email,
                    "workspaceId": self.workspace_id,
                    "lastLogin": utc_from_clock(self._clock),
                },
            )
            return True
        except StoreError:
            log.error("workspace_initialize_failed", workspace_id=self.workspace_id, user_id=user.uid)
            return self.is_available
        finally:
            self.is_loading = False

    async def refresh(self) -> Optional[WorkspaceDoc]:
        """Re-read the held workspace from the store.

        A no-op until the workspace has been loaded. StoreError propagates and
        leaves the held copy untouched.
        """
        if self.workspace is None:
            return None
        self.workspace = await self._workspaces.get(self.workspace_id)
        return self.workspace

    # ── Bottle ───────────────────────────────────────────────────────────────

    async def update_bottle_message(self, message: str) -> Optional[Bottle]:
        """Replace the message and start a fresh, empty reply thread."""
        await self.refresh()
        if self.workspace is None:
            log.warning("bottle_update_skipped", reason="workspace_not_loaded")
            return None

        current = self.workspace.bottle
        lat = coerce_coordinate(current.lat, DEFAULT_BOTTLE_LAT) if current else DEFAULT_BOTTLE_LAT
        lng = coerce_coordinate(current.lng, DEFAULT_BOTTLE_LNG) if current else DEFAULT_BOTTLE_LNG

        bottle = Bottle(
            message=message,
            lat=lat,
            lng=lng,
            last_moved_at=utc_from_clock(self._clock),
            replies=[],
        )
        await self._workspaces.merge(self.workspace_id, {"bottle": bottle.model_dump(by_alias=True)})
        self._set_bottle(bottle)
        log.info("bottle_message_updated", workspace_id=self.workspace_id)
        return bottle

    async def move_bottle(self, lat: float, lng: float) -> Optional[Bottle]:
        """Relocate the bottle. Best effort: store failures are logged only."""
        try:
            await self.refresh()
        except StoreError:
            log.error("bottle_move_failed", workspace_id=self.workspace_id)
            return None
        return await self._relocate(lat, lng)

    async def read_bottle(self) -> Optional[Bottle]:
        """Reading the bottle sets it adrift by at most bottle_drift_degrees."""
        await self.refresh()
        if self.workspace is None or self.workspace.bottle is None:
            return None
        bottle = self.workspace.bottle
        lat, lng = drift_coordinates(
            bottle.lat, bottle.lng, self._access.bottle_drift_degrees, self._rng
        )
        return await self._relocate(lat, lng) or bottle

    async def reply_to_bottle(self, text: str) -> Optional[BottleReply]:
        await self.refresh()
        if self.workspace is None or self.workspace.bottle is None or self._user is None:
            log.warning("bottle_reply_skipped", reason="no_bottle")
            return None

        reply = BottleReply(
            id=generate_reply_id(),
            text=text,
            author=self._user.email or ANONYMOUS_AUTHOR,
            created_at=utc_from_clock(self._clock),
        )
        await self._workspaces.push_reply(self.workspace_id, reply)

        bottle = self.workspace.bottle
        self._set_bottle(bottle.model_copy(update={"replies": [*bottle.replies, reply]}))
        log.info("bottle_reply_added", workspace_id=self.workspace_id, reply_id=reply.id)
        return reply

    async def delete_bottle_reply(self, reply_id: str) -> bool:
        """Remove one reply by id. Returns False when it was not there."""
        await self.refresh()
        if self.workspace is None or self.workspace.bottle is None:
            return False

        bottle = self.workspace.bottle
        remaining = [r for r in bottle.replies if r.id != reply_id]
        if len(remaining) == len(bottle.replies):
            return False

        await self._workspaces.pull_reply(self.workspace_id, reply_id)
        self._set_bottle(bottle.model_copy(update={"replies": remaining}))
        log.info("bottle_reply_deleted", workspace_id=self.workspace_id, reply_id=reply_id)
        return True

    async def _relocate(self, lat: float, lng: float) -> Optional[Bottle]:
        if self.workspace is None or self.workspace.bottle is None:
            log.warning("bottle_move_skipped", reason="no_bottle")
            return None

        moved_at = utc_from_clock(self._clock)
        lat, lng = float(lat), float(lng)
        try:
            await self._workspaces.merge(
                self.workspace_id,
                {"bottle.lat": lat, "bottle.lng": lng, "bottle.lastMovedAt": moved_at},
            )
        except StoreError:
            log.error("bottle_move_failed", workspace_id=self.workspace_id)
            return None

        bottle = self.workspace.bottle.model_copy(
            update={"lat": lat, "lng": lng, "last_moved_at": moved_at}
        )
        self._set_bottle(bottle)
        return bottle

    def _set_bottle(self, bottle: Bottle) -> None:
        if self.workspace is not None:
            self.workspace = self.workspace.model_copy(update={"bottle": bottle})
