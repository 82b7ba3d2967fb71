"""
Random identifier generators.
"""

from __future__ import annotations

import secrets


def generate_secure_token(length: int = 32) -> str:
    """Generate a URL-safe token from *length* random bytes.

    Used for emailed login links and the opaque client cookie.
    """
    return secrets.token_urlsafe(length)


def generate_reply_id() -> str:
    """Short random id for a bottle reply (unique within one thread)."""
    return secrets.token_hex(5)
