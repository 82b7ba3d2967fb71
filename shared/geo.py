"""
Coordinate helpers for the bottle.
"""

from __future__ import annotations

import math
import random
from typing import Any, Optional

DEFAULT_BOTTLE_LAT = 5.3547
DEFAULT_BOTTLE_LNG = 100.3293


def coerce_coordinate(value: Any, fallback: float) -> float:
    """Return *value* as a finite float, or *fallback* if it is not one."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if math.isnan(number) or math.isinf(number):
        return fallback
    return number


def clamp_latitude(lat: float) -> float:
    return max(-90.0, min(90.0, lat))


def wrap_longitude(lng: float) -> float:
    """Wrap *lng* into [-180, 180)."""
    return ((lng + 180.0) % 360.0) - 180.0


def drift_coordinates(
    lat: float,
    lng: float,
    max_offset: float,
    rng: Optional[random.Random] = None,
) -> tuple[float, float]:
    """Displace a point by at most *max_offset* degrees on each axis.

    The result is clamped to valid latitude and wrapped in longitude.
    """
    rng = rng or random
    new_lat = lat + rng.uniform(-max_offset, max_offset)
    new_lng = lng + rng.uniform(-max_offset, max_offset)
    return clamp_latitude(new_lat), wrap_longitude(new_lng)
