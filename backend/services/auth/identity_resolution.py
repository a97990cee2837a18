"""Identity normalization and login-user resolution helpers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Callable, cast

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core import verify_password
from models import User


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _asc(column: Any) -> Any:
    return cast(Any, column).asc()


def _lower(column: Any) -> Any:
    return cast(Any, func.lower(cast(Any, column)))


def normalize_email(value: str) -> str:
    return value.strip().lower()


def normalize_username(value: str) -> str:
    return value.strip().lower()


def resolve_user_from_candidates(
    candidates: Sequence[User],
    *,
    password: str,
    preferred_identifier: str | None = None,
    identifier_getter: Callable[[User], str | None] | None = None,
) -> User | None:
    ordered_candidates = candidates
    if preferred_identifier is not None and identifier_getter is not None:
        ordered_candidates = sorted(
            candidates,
            key=lambda candidate: 0
            if (identifier_getter(candidate) or "").lower() == preferred_identifier
            else 1,
        )

    for candidate in ordered_candidates:
        if verify_password(password, candidate.password_hash):
            return candidate
    return None


async def registration_conflict_exists(
    session: AsyncSession,
    *,
    username: str,
    normalized_email: str,
) -> bool:
    existing = await session.execute(
        select(User)
        .where(
            or_(
                _eq(_lower(User.username), normalize_username(username)),
                _eq(_lower(User.email), normalized_email),
            )
        )
        .limit(1)
    )
    return existing.scalar_one_or_none() is not None


async def username_taken(session: AsyncSession, username: str) -> bool:
    result = await session.execute(
        select(User.id).where(_eq(_lower(User.username), normalize_username(username))).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def find_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(
        select(User)
        .where(_eq(_lower(User.email), normalize_email(email)))
        .order_by(_asc(User.id))
        .limit(1)
    )
    return result.scalar_one_or_none()


async def resolve_login_user(
    session: AsyncSession,
    *,
    identifier: str,
    password: str,
) -> User | None:
    """Return the account whose username or email matches and whose password verifies.

    An identifier can name one account by username and another by email, so
    every candidate is tried; the kind of match the identifier looks like is
    tried first.
    """
    lowered_identifier = identifier.strip().lower()
    if not lowered_identifier:
        return None

    result = await session.execute(
        select(User)
        .where(
            or_(
                _eq(_lower(User.username), lowered_identifier),
                _eq(_lower(User.email), lowered_identifier),
            )
        )
        .order_by(_asc(User.id))
    )
    candidates = result.scalars().all()
    getter: Callable[[User], str | None] = (
        (lambda candidate: candidate.email)
        if "@" in lowered_identifier
        else (lambda candidate: candidate.username)
    )
    return resolve_user_from_candidates(
        candidates,
        password=password,
        preferred_identifier=lowered_identifier,
        identifier_getter=getter,
    )
