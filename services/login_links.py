"""
One-time login links that prove ownership of an email address.

Token lifecycle on the user record:

    NoToken ──issue──▶ Issued ──verify──▶ Used      (terminal)
                         │
                         └──time passes──▶ Expired  (terminal)

Only the SHA-256 of the token is stored. Verifying a link stamps
emailVerifiedAt but never opens a session; the user still has to sign in.
"""

from __future__ import annotations

from urllib.parse import urlencode

from errors import InvalidLinkError, LinkAlreadyUsedError, LinkExpiredError
from infrastructure.email.protocol import EmailProvider
from repositories.user_repository import UserRepository
from shared.crypto import hash_token, token_matches
from shared.datetime_utils import Clock, now_ms, utc_from_clock
from shared.generators import generate_secure_token
from shared.logging import get_logger

log = get_logger(__name__)

VERIFY_LOGIN_PATH = "/verify-login"


def build_login_link(app_url: str, uid: str, token: str) -> str:
    query = urlencode({"uid": uid, "token": token})
    return f"{app_url.rstrip('/')}{VERIFY_LOGIN_PATH}?{query}"


class LoginLinkService:
    def __init__(
        self,
        users: UserRepository,
        email_provider: EmailProvider,
        app_url: str,
        ttl_seconds: int = 900,
        clock: Clock = now_ms,
    ) -> None:
        self._users = users
        self._email = email_provider
        self._app_url = app_url
        self._ttl_ms = ttl_seconds * 1000
        self._clock = clock

    async def issue(self, uid: str, email: str) -> bool:
        """Store a fresh token for *uid* and email the link.

        Returns whether the email provider accepted the message; a failed
        send is logged, the token stays valid.
        """
        token = generate_secure_token()
        expires_at = self._clock() + self._ttl_ms
        await self._users.issue_login_token(uid, hash_token(token), expires_at)

        link = build_login_link(self._app_url, uid, token)
        sent = await self._email.send_login_link(email, link, self._ttl_ms // 60_000)
        if sent:
            log.info("login_link_issued", user_id=uid, expires_at=expires_at)
        else:
            log.error("login_link_send_failed", user_id=uid)
        return sent

    async def verify(self, uid: str, token: str) -> None:
        """Consume a login link.

        Raises:
            InvalidLinkError: missing parameters, unknown user, no token
                issued, or the token does not match.
            LinkExpiredError: the token is past loginTokenExpiry, used or not.
            LinkAlreadyUsedError: the token was consumed before.
        """
        if not uid or not token:
            raise InvalidLinkError("Invalid verification link.")

        user = await self._users.find_by_id(uid)
        if user is None or not user.login_token:
            log.warning("login_link_rejected", user_id=uid, reason="no_token")
            raise InvalidLinkError("Invalid or expired verification link.")

        if not token_matches(token, user.login_token):
            log.warning("login_link_rejected", user_id=uid, reason="mismatch")
            raise InvalidLinkError("Invalid or expired verification link.")

        now = self._clock()
        if user.login_token_expiry is None or user.login_token_expiry < now:
            log.warning("login_link_rejected", user_id=uid, reason="expired")
            raise LinkExpiredError("Verification link has expired. Please log in again.")

        if user.login_token_used:
            log.warning("login_link_rejected", user_id=uid, reason="already_used")
            raise LinkAlreadyUsedError("This verification link has already been used.")

        consumed = await self._users.consume_login_token(
            uid, user.login_token, utc_from_clock(self._clock)
        )
        if not consumed:
            log.warning("login_link_rejected", user_id=uid, reason="consumed_concurrently")
            raise LinkAlreadyUsedError("This verification link has already been used.")

        log.info("email_verified", user_id=uid)
