"""
Credential hashing and login-token hashing.

Passwords use argon2id (argon2-cffi). One-time login tokens are stored as a
SHA-256 digest so the emailed plaintext never reaches the users collection.
"""

from __future__ import annotations

import hashlib
import hmac

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_password_hasher = PasswordHasher()


def hash_password(plain_password: str) -> str:
    """Hash *plain_password* with argon2id."""
    return _password_hasher.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Return ``True`` when *plain_password* matches *password_hash*.

    A malformed stored hash counts as a mismatch rather than an error.
    """
    try:
        return _password_hasher.verify(password_hash, plain_password)
    except (VerificationError, InvalidHashError):
        return False


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_matches(token: str, token_hash: str) -> bool:
    """Constant-time comparison of a plaintext token against its stored hash."""
    return hmac.compare_digest(hash_token(token), token_hash)
