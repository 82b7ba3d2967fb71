"""
Session Authority: the single gatekeeper for protected functionality.

Access requires, in order:
    1. the email is on the configured allow-list,
    2. the identity provider accepts the credentials,
    3. the email address has been verified out of band,
    4. the session (user id, sessionExpiry) has not expired.

The session lives in memory on the authority and is mirrored to the user
record as ``sessionExpiry`` (epoch ms). A background watcher signs the
client out as soon as the session lapses.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional

from config import AccessSettings
from errors import (
    EmailVerificationRequiredError,
    NotAuthorizedError,
    StoreError,
)
from infrastructure.identity.protocol import Identity, IdentityProvider, Unsubscribe
from repositories.user_repository import UserRepository
from schemas.models.user import LoginHistoryEntry
from services.expiry_watcher import SessionExpiryWatcher
from services.login_links import LoginLinkService
from services.session_policy import SessionAction, is_session_valid, reconcile_session
from shared.datetime_utils import Clock, now_ms, utc_from_clock
from shared.logging import get_logger

log = get_logger(__name__)

VERIFICATION_REQUIRED_MESSAGE = (
    "Email not verified. A verification email has been sent. "
    "Please verify your email and try again."
)
NOT_AUTHORIZED_MESSAGE = "This email is not authorized to access this site."

SessionListener = Callable[[Optional[Identity]], Awaitable[None]]


class SessionAuthority:
    def __init__(
        self,
        identity_provider: IdentityProvider,
        users: UserRepository,
        access: AccessSettings,
        login_links: Optional[LoginLinkService] = None,
        clock: Clock = now_ms,
    ) -> None:
        self._provider = identity_provider
        self._users = users
        self._access = access
        self._links = login_links
        self._clock = clock

        self._identity: Optional[Identity] = None
        self._session_expiry: Optional[int] = None
        self._signing_in = False
        self._unsubscribe: Optional[Unsubscribe] = None
        self._listeners: list[SessionListener] = []

        self.loading = True
        self.needs_email_verification = False

        self._watcher = SessionExpiryWatcher(
            is_valid=self.is_session_valid,
            on_expired=self.sign_out,
            interval_seconds=access.session_check_interval_seconds,
        )

    # ── Read-only state ──────────────────────────────────────────────────────

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def session_expiry(self) -> Optional[int]:
        return self._session_expiry

    def is_session_valid(self) -> bool:
        return is_session_valid(self._session_expiry, self._clock())

    def on_session_change(self, listener: SessionListener) -> None:
        """Register a callback run with the identity when a session starts,
        and with None when it ends."""
        self._listeners.append(listener)

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Subscribe to the identity provider and reconcile current state."""
        if self._unsubscribe is None:
            self._unsubscribe = self._provider.observe_auth_state(
                self._on_auth_state_changed
            )
        await self._on_auth_state_changed(self._provider.current_identity)

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._watcher.stop()

    # ── Operations ───────────────────────────────────────────────────────────

    async def sign_in(
        self, email: str, password: str, user_agent: Optional[str] = None
    ) -> int:
        """Sign in and return the new session expiry (epoch ms).

        Raises:
            NotAuthorizedError: email not on the allow-list. Checked before
                the identity provider sees the password.
            InvalidCredentialsError: rejected by the identity provider.
            EmailVerificationRequiredError: credentials fine, email not yet
                verified. A verification email has been sent.
            StoreError: the session could not be persisted.
        """
        if not self._access.is_allowed(email):
            log.warning("sign_in_rejected", reason="not_on_allow_list")
            raise NotAuthorizedError(NOT_AUTHORIZED_MESSAGE)

        self._signing_in = True
        try:
            identity = await self._provider.authenticate(email, password)
            await identity.reload()

            if not identity.email_verified:
                await self._provider.send_verification_email(identity)
                await self._provider.sign_out()
                await self._clear()
                self.needs_email_verification = True
                log.info("sign_in_needs_verification", user_id=identity.uid)
                raise EmailVerificationRequiredError(VERIFICATION_REQUIRED_MESSAGE)

            now = self._clock()
            expiry = now + self._access.session_duration_ms
            entry = LoginHistoryEntry(timestamp=utc_from_clock(self._clock), user_agent=user_agent)
            try:
                await self._users.record_login(
                    identity.uid, identity.email or email, expiry, entry
                )
            except StoreError:
                await self._provider.sign_out()
                raise

            self.needs_email_verification = False
            await self._establish(identity, expiry)
            log.info("sign_in_succeeded", user_id=identity.uid, session_expiry=expiry)
            return expiry
        finally:
            self._signing_in = False

    async def sign_out(self) -> None:
        """End the session. Safe to call repeatedly or with no session.

        The provider is signed out before the stored record is touched, so a
        store failure still leaves nobody signed in locally.
        """
        identity = self._identity or self._provider.current_identity
        try:
            await self._provider.sign_out()
            if identity is not None:
                await self._users.merge(
                    identity.uid,
                    {
                        "sessionExpiry": None,
                        "lastLogout": utc_from_clock(self._clock),
                    },
                )
        finally:
            self.needs_email_verification = False
            await self._clear()
        if identity is not None:
            log.info("signed_out", user_id=identity.uid)

    async def verify_email_link(self, uid: str, token: str) -> None:
        """Consume an emailed verification link (see LoginLinkService.verify)."""
        if self._links is None:
            raise RuntimeError("SessionAuthority was built without a LoginLinkService")
        await self._links.verify(uid, token)

    # ── Auth-state reconciliation ────────────────────────────────────────────

    async def _on_auth_state_changed(self, identity: Optional[Identity]) -> None:
        # sign_in manages its own state transitions
        if self._signing_in:
            return
        try:
            await self._reconcile(identity)
        finally:
            self.loading = False

    async def _reconcile(self, identity: Optional[Identity]) -> None:
        if identity is None:
            await self._clear()
            return

        now = self._clock()
        try:
            user = await self._users.find_by_id(identity.uid)
        except StoreError:
            # Fail closed: no session without the stored record
            log.error("session_reconcile_failed", user_id=identity.uid)
            await self._clear()
            return

        decision = reconcile_session(
            identity,
            user.session_expiry if user else None,
            now,
            self._access.session_duration_ms,
        )

        if decision.action is SessionAction.ADOPT:
            await self._establish(identity, decision.session_expiry)
            log.info("session_adopted", user_id=identity.uid, session_expiry=decision.session_expiry)
        elif decision.action is SessionAction.MINT:
            try:
                await self._users.merge(
                    identity.uid,
                    {
                        "email": identity.email,
                        "sessionExpiry": decision.session_expiry,
                        "lastLogin": utc_from_clock(self._clock),
                    },
                )
            except StoreError:
                log.error("session_mint_failed", user_id=identity.uid)
                await self._clear()
                return
            await self._establish(identity, decision.session_expiry)
            log.info("session_minted", user_id=identity.uid, session_expiry=decision.session_expiry)
        elif decision.action is SessionAction.SIGN_OUT:
            log.info("session_refused_unverified", user_id=identity.uid)
            await self._clear()
            await self._provider.sign_out()
        else:
            await self._clear()

    # ── Internal state transitions ───────────────────────────────────────────

    async def _establish(self, identity: Identity, expiry: Optional[int]) -> None:
        self._identity = identity
        self._session_expiry = expiry
        self._watcher.start()
        await self._notify(identity)

    async def _clear(self) -> None:
        self._watcher.stop()
        had_session = self._identity is not None or self._session_expiry is not None
        self._identity = None
        self._session_expiry = None
        if had_session:
            await self._notify(None)

    async def _notify(self, identity: Optional[Identity]) -> None:
        for listener in list(self._listeners):
            await listener(identity)
