"""Verification codes and password reset tokens."""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, cast

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core import settings
from models import PasswordResetToken, VerificationCode

VERIFICATION_CODE_LENGTH = 6
RESET_TOKEN_BYTES = 32


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _gt(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column > value)


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def verification_code_ttl() -> timedelta:
    return timedelta(minutes=settings.verification_code_expire_minutes)


def password_reset_ttl() -> timedelta:
    return timedelta(minutes=settings.password_reset_expire_minutes)


def generate_verification_code() -> str:
    # Always six digits with no leading zero.
    return str(100_000 + secrets.randbelow(900_000))


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


async def delete_verification_codes(session: AsyncSession, user_id: int) -> None:
    await session.execute(
        delete(VerificationCode).where(_eq(VerificationCode.user_id, user_id))
    )


async def issue_verification_code(
    session: AsyncSession,
    user_id: int,
    *,
    replace_existing: bool = False,
    now: datetime | None = None,
) -> VerificationCode:
    """Create a fresh code for ``user_id``; the caller commits."""
    issued_at = now or utcnow()
    if replace_existing:
        await delete_verification_codes(session, user_id)
    code = VerificationCode(
        user_id=user_id,
        code=generate_verification_code(),
        created_at=issued_at,
        expires_at=issued_at + verification_code_ttl(),
    )
    session.add(code)
    await session.flush()
    return code


async def consume_verification_code(
    session: AsyncSession,
    user_id: int,
    code: str,
    *,
    now: datetime | None = None,
) -> bool:
    """Check ``code`` and, on success, delete every code the user holds.

    A code is valid strictly before its expiry instant.
    """
    checked_at = now or utcnow()
    result = await session.execute(
        select(VerificationCode)
        .where(
            _eq(VerificationCode.user_id, user_id),
            _eq(VerificationCode.code, code.strip()),
            _gt(VerificationCode.expires_at, checked_at),
        )
        .order_by(_desc(VerificationCode.created_at), _desc(VerificationCode.id))
        .limit(1)
    )
    if result.scalar_one_or_none() is None:
        return False
    await delete_verification_codes(session, user_id)
    return True


async def issue_password_reset_token(
    session: AsyncSession,
    user_id: int,
    *,
    now: datetime | None = None,
) -> str:
    """Replace the user's reset token and return the raw value.

    Only the SHA-256 hash is persisted; the raw token exists solely in the
    email sent to the user.
    """
    issued_at = now or utcnow()
    await session.execute(
        delete(PasswordResetToken).where(_eq(PasswordResetToken.user_id, user_id))
    )
    raw_token = secrets.token_hex(RESET_TOKEN_BYTES)
    session.add(
        PasswordResetToken(
            user_id=user_id,
            token_hash=hash_reset_token(raw_token),
            created_at=issued_at,
            expires_at=issued_at + password_reset_ttl(),
        )
    )
    await session.flush()
    return raw_token


async def consume_password_reset_token(
    session: AsyncSession,
    raw_token: str,
    *,
    now: datetime | None = None,
) -> int | None:
    """Return the owning user id for a live token and delete it, else None."""
    checked_at = now or utcnow()
    result = await session.execute(
        select(PasswordResetToken).where(
            _eq(PasswordResetToken.token_hash, hash_reset_token(raw_token.strip())),
            _gt(PasswordResetToken.expires_at, checked_at),
        )
    )
    token_obj = result.scalar_one_or_none()
    if token_obj is None:
        return None
    user_id = token_obj.user_id
    await session.execute(
        delete(PasswordResetToken).where(_eq(PasswordResetToken.user_id, user_id))
    )
    return user_id


async def prune_expired_one_time_codes(
    session: AsyncSession,
    *,
    now: datetime | None = None,
) -> tuple[int, int]:
    """Delete expired codes and reset tokens; returns both row counts."""
    cutoff = now or utcnow()
    codes = await session.execute(
        delete(VerificationCode).where(
            cast(ColumnElement[bool], VerificationCode.expires_at <= cutoff)
        )
    )
    tokens = await session.execute(
        delete(PasswordResetToken).where(
            cast(ColumnElement[bool], PasswordResetToken.expires_at <= cutoff)
        )
    )
    return int(cast(Any, codes).rowcount or 0), int(cast(Any, tokens).rowcount or 0)
