"""EmailProvider protocol. Services depend on this, not the concrete implementation."""

from typing import Protocol


class EmailProvider(Protocol):
    async def send_login_link(self, email: str, link: str, expires_in_minutes: int) -> bool: ...
