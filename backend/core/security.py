"""Password hashing and session token helpers."""

from __future__ import annotations

import re
from uuid import uuid4
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt

from .config import settings

_BCRYPT_COST_PATTERN = re.compile(r"^\$2[abxy]\$(\d{2})\$")
# bcrypt only considers the first 72 bytes of the secret.
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.password_hash_rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a plaintext password against a stored bcrypt hash.

    Accounts created through an external identity have no password hash and
    never match.
    """
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        return False


def needs_rehash(password_hash: str | None) -> bool:
    if not password_hash:
        return False
    match = _BCRYPT_COST_PATTERN.match(password_hash)
    if match is None:
        return True
    return int(match.group(1)) != settings.password_hash_rounds


def create_access_token(
    *,
    user_id: int,
    username: str,
    uid: int,
    is_admin: bool,
    expires_delta: timedelta | None = None,
    now: datetime | None = None,
) -> str:
    issued_at = now or datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "user_id": user_id,
        "username": username,
        "uid": uid,
        "is_admin": is_admin,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + lifetime).timestamp()),
        # Distinguishes tokens issued to the same user within one second.
        "jti": uuid4().hex,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry, raising ValueError on any failure."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.PyJWTError as exc:
        raise ValueError("Invalid token") from exc
    return payload


__all__ = [
    "create_access_token",
    "decode_token",
    "hash_password",
    "needs_rehash",
    "verify_password",
]
