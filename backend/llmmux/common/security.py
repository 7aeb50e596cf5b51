"""
Session Token and Password Utilities

Session tokens are JWTs signed with JWT_SECRET; passwords are stored as bcrypt hashes.
"""

from __future__ import annotations

import time
from typing import Any

import bcrypt
import jwt

# bcrypt only looks at the first 72 bytes
_BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a password with bcrypt (12 rounds)."""
    password_bytes = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plain password against a stored bcrypt hash."""
    password_bytes = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(password_bytes, password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_session_token(
    *,
    user_id: int,
    claims: dict[str, Any],
    secret: str,
    algorithm: str,
    ttl_seconds: int,
    now: int | None = None,
) -> str:
    """
    Sign a session token for a user.

    `sub` carries the user id as a string; `claims` are merged into the payload.
    """
    issued_at = int(time.time() if now is None else now)
    payload = {
        **claims,
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + int(ttl_seconds),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_session_token(*, token: str, secret: str, algorithm: str) -> dict[str, Any]:
    """
    Verify signature and expiry of a session token.

    Raises:
        jwt.InvalidTokenError: Bad signature, expired, malformed or missing claims
    """
    return jwt.decode(
        token,
        secret,
        algorithms=[algorithm],
        options={"require": ["sub", "exp"]},
    )
