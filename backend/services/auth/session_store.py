"""Session token issuance and server-tracked session rows."""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Any, cast

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core import create_access_token, settings
from models import User, UserSession
from services.authorization import is_admin

MAX_ACTIVE_SESSIONS = settings.max_active_sessions


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def hash_session_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_session_token(user: User, *, now: datetime | None = None) -> str:
    if user.id is None:
        raise ValueError("Cannot issue a token for an unsaved user")
    return create_access_token(
        user_id=user.id,
        username=user.username,
        uid=user.uid,
        is_admin=is_admin(user),
        now=now,
    )


async def enforce_session_limit(
    session: AsyncSession,
    user_id: int,
    *,
    max_active_sessions: int = MAX_ACTIVE_SESSIONS,
) -> None:
    issued_at_column = cast(Any, UserSession.issued_at)
    id_column = cast(Any, UserSession.id)

    result = await session.execute(
        select(UserSession)
        .where(_eq(UserSession.user_id, user_id))
        .order_by(issued_at_column.desc(), id_column.desc())
    )
    sessions = result.scalars().all()
    surplus = sessions[max_active_sessions:]
    for session_obj in surplus:
        await session.delete(session_obj)
    if surplus:
        await session.flush()


async def start_session(
    session: AsyncSession,
    user: User,
    *,
    now: datetime | None = None,
    max_active_sessions: int = MAX_ACTIVE_SESSIONS,
) -> str:
    """Sign a session token for ``user`` and track it; the caller commits."""
    issued_at = now or datetime.now(timezone.utc)
    token = issue_session_token(user, now=issued_at)
    if user.id is None:  # pragma: no cover - issue_session_token guards this
        raise ValueError("Cannot track a session for an unsaved user")
    session.add(
        UserSession(
            user_id=user.id,
            token_hash=hash_session_token(token),
            issued_at=issued_at,
            expires_at=issued_at + timedelta(minutes=settings.access_token_expire_minutes),
        )
    )
    await session.flush()
    await enforce_session_limit(
        session,
        user.id,
        max_active_sessions=max_active_sessions,
    )
    return token


async def end_user_sessions(session: AsyncSession, user_id: int) -> int:
    """Delete every tracked session for ``user_id``.

    Bearer tokens are verified statelessly, so an already issued token keeps
    working until it expires.
    """
    result = await session.execute(
        delete(UserSession).where(_eq(UserSession.user_id, user_id))
    )
    return int(cast(Any, result).rowcount or 0)


async def prune_expired_sessions(
    session: AsyncSession,
    *,
    now: datetime | None = None,
) -> int:
    cutoff = now or datetime.now(timezone.utc)
    result = await session.execute(
        delete(UserSession).where(
            cast(ColumnElement[bool], UserSession.expires_at <= cutoff)
        )
    )
    return int(cast(Any, result).rowcount or 0)
