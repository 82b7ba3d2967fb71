"""IdentityProvider protocol. The Session Authority depends on this, not on a backend.

An IdentityProvider instance belongs to one client: it tracks at most one
signed-in identity and notifies listeners whenever that changes.
"""

from typing import Awaitable, Callable, Optional, Protocol


class Identity(Protocol):
    uid: str
    email: Optional[str]

    @property
    def email_verified(self) -> bool: ...

    async def reload(self) -> None:
        """Refresh email_verified from the backing store."""
        ...


AuthStateListener = Callable[[Optional[Identity]], Awaitable[None]]
Unsubscribe = Callable[[], None]


class IdentityProvider(Protocol):
    @property
    def current_identity(self) -> Optional[Identity]: ...

    async def authenticate(self, email: str, password: str) -> Identity:
        """Check credentials; raises InvalidCredentialsError on failure."""
        ...

    async def send_verification_email(self, identity: Identity) -> bool: ...

    async def sign_out(self) -> None: ...

    def observe_auth_state(self, listener: AuthStateListener) -> Unsubscribe: ...
