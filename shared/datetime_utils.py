"""
Clock helpers.

Session expiry and login-token expiry are stored as epoch milliseconds;
every other timestamp is a timezone-aware UTC datetime.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable, Optional

# Injected into services so tests can move time explicitly.
Clock = Callable[[], int]

_MS_PER_MINUTE = 60 * 1000
_MS_PER_HOUR = 60 * _MS_PER_MINUTE


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def utc_from_clock(clock: Clock) -> datetime:
    return from_epoch_ms(clock())


def format_time_remaining(expiry_ms: Optional[int], now: int) -> str:
    """Render the time left in a session as ``"<h>h <m>m"``.

    Returns ``""`` when there is no session and ``"Expired"`` once
    *expiry_ms* is not in the future.
    """
    if expiry_ms is None:
        return ""
    remaining = expiry_ms - now
    if remaining <= 0:
        return "Expired"
    hours = remaining // _MS_PER_HOUR
    minutes = (remaining % _MS_PER_HOUR) // _MS_PER_MINUTE
    return f"{hours}h {minutes}m"
