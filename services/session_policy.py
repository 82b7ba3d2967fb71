"""
Pure session rules: validity and reconciliation after an identity change.

Nothing in this module performs I/O, so every rule is testable with plain
values for the identity, the stored expiry and the current time.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from infrastructure.identity.protocol import Identity


def is_session_valid(session_expiry: Optional[int], now: int) -> bool:
    """A session is valid iff its expiry is set and strictly in the future."""
    return session_expiry is not None and session_expiry > now


class SessionAction(str, Enum):
    ADOPT = "adopt"  # stored session still live, reuse it
    MINT = "mint"  # verified identity without a live session, start a new one
    SIGN_OUT = "sign_out"  # authenticated upstream but unverified
    CLEAR = "clear"  # no identity at all


@dataclass(frozen=True)
class SessionDecision:
    action: SessionAction
    session_expiry: Optional[int] = None


def reconcile_session(
    identity: Optional[Identity],
    stored_expiry: Optional[int],
    now: int,
    duration_ms: int,
) -> SessionDecision:
    """Decide what local session state should follow an auth-state change."""
    if identity is None:
        return SessionDecision(SessionAction.CLEAR)
    if is_session_valid(stored_expiry, now):
        return SessionDecision(SessionAction.ADOPT, stored_expiry)
    if identity.email_verified:
        return SessionDecision(SessionAction.MINT, now + duration_ms)
    return SessionDecision(SessionAction.SIGN_OUT)
