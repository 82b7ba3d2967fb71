"""Mongo-backed implementation of IdentityProvider.

Credentials are argon2 hashes on the user record; an identity counts as
verified once emailVerifiedAt is set. One provider instance per client.
"""

from __future__ import annotations

from typing import Optional

from errors import InvalidCredentialsError
from infrastructure.identity.protocol import AuthStateListener, Unsubscribe
from repositories.user_repository import UserRepository
from schemas.models.user import UserDoc
from services.login_links import LoginLinkService
from shared.crypto import hash_password, verify_password
from shared.datetime_utils import Clock, now_ms, utc_from_clock
from shared.logging import get_logger

log = get_logger(__name__)


class LocalIdentity:
    def __init__(self, users: UserRepository, user: UserDoc) -> None:
        self._users = users
        self.uid = user.uid
        self.email: Optional[str] = user.email
        self._email_verified = user.email_verified

    @property
    def email_verified(self) -> bool:
        return self._email_verified

    async def reload(self) -> None:
        user = await self._users.find_by_id(self.uid)
        if user is None:
            self._email_verified = False
            return
        self.email = user.email
        self._email_verified = user.email_verified


class LocalIdentityProvider:
    def __init__(self, users: UserRepository, links: LoginLinkService) -> None:
        self._users = users
        self._links = links
        self._current: Optional[LocalIdentity] = None
        self._listeners: list[AuthStateListener] = []

    @property
    def current_identity(self) -> Optional[LocalIdentity]:
        return self._current

    async def authenticate(self, email: str, password: str) -> LocalIdentity:
        user = await self._users.find_by_email(email)
        if user is None or not user.password_hash:
            log.warning("authentication_failed", reason="unknown_user")
            raise InvalidCredentialsError("Invalid email or password.")
        if not verify_password(password, user.password_hash):
            log.warning("authentication_failed", user_id=user.uid, reason="bad_password")
            raise InvalidCredentialsError("Invalid email or password.")

        identity = LocalIdentity(self._users, user)
        await self._set_current(identity)
        return identity

    async def send_verification_email(self, identity: LocalIdentity) -> bool:
        return await self._links.issue(identity.uid, identity.email or "")

    async def sign_out(self) -> None:
        if self._current is None:
            return
        await self._set_current(None)

    def observe_auth_state(self, listener: AuthStateListener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _set_current(self, identity: Optional[LocalIdentity]) -> None:
        self._current = identity
        for listener in list(self._listeners):
            await listener(identity)


async def register_user(
    users: UserRepository,
    email: str,
    password: str,
    clock: Clock = now_ms,
) -> str:
    """Create an unverified account with an argon2 password hash."""
    user = UserDoc(
        email=email.strip().lower(),
        password_hash=hash_password(password),
        created_at=utc_from_clock(clock),
    )
    uid = await users.insert(user)
    log.info("user_registered", user_id=uid)
    return uid
