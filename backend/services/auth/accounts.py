"""Account creation and lookups shared by local and external sign-up."""

from __future__ import annotations

import logging
from typing import Any, cast

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from models import BannedUser, Profile, User
from services.authorization import role_for_new_account

from .uid_sequence import next_uid

logger = logging.getLogger(__name__)

MAX_USERNAME_LENGTH = 50
FORBIDDEN_USERNAME_CHARACTERS = frozenset("<>")


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def username_format_error(username: str) -> str | None:
    """Return a human readable reason ``username`` is unacceptable, if any."""
    if not 1 <= len(username) <= MAX_USERNAME_LENGTH:
        return f"Username must be 1-{MAX_USERNAME_LENGTH} characters"
    if any(ch.isspace() or ch in FORBIDDEN_USERNAME_CHARACTERS for ch in username):
        return "Username cannot contain spaces or < > characters"
    return None


def sanitize_username(raw: str) -> str:
    return "".join(
        ch for ch in raw.lower() if not ch.isspace() and ch not in FORBIDDEN_USERNAME_CHARACTERS
    )


async def create_account(
    session: AsyncSession,
    *,
    username: str,
    email: str,
    password_hash: str | None,
    is_verified: bool = False,
    discord_id: str | None = None,
    discord_username: str | None = None,
    discord_avatar: str | None = None,
    uid: int | None = None,
) -> User:
    """Insert a user plus its empty profile; the caller commits.

    ``uid`` is allocated from the sequence unless the caller already reserved one.
    """
    if uid is None:
        uid = await next_uid(session)
    user = User(
        username=username,
        email=email,
        password_hash=password_hash,
        uid=uid,
        role=role_for_new_account(uid).value,
        is_verified=is_verified,
        discord_id=discord_id,
        discord_username=discord_username,
        discord_avatar=discord_avatar,
    )
    session.add(user)
    await session.flush()
    if user.id is None:  # pragma: no cover - flush assigns the key
        raise RuntimeError("User insert did not assign an identifier")
    session.add(Profile(user_id=user.id))
    await session.flush()
    logger.info("Created account %s (uid=%s, role=%s)", user.username, uid, user.role)
    return user


async def get_user(session: AsyncSession, user_id: int) -> User | None:
    result = await session.execute(select(User).where(_eq(User.id, user_id)))
    return result.scalar_one_or_none()


async def get_user_by_uid(session: AsyncSession, uid: int) -> User | None:
    result = await session.execute(select(User).where(_eq(User.uid, uid)))
    return result.scalar_one_or_none()


async def get_profile(session: AsyncSession, user_id: int) -> Profile | None:
    result = await session.execute(select(Profile).where(_eq(Profile.user_id, user_id)))
    return result.scalar_one_or_none()


async def get_ban(session: AsyncSession, user_id: int) -> BannedUser | None:
    result = await session.execute(
        select(BannedUser).where(_eq(BannedUser.user_id, user_id))
    )
    return result.scalar_one_or_none()
