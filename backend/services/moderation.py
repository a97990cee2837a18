"""Moderation actions applied by the admin back office.

Every function flushes but never commits; routers commit and then append the
audit entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, cast

from fastapi import HTTPException, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from models import (
    DEFAULT_BAN_REASON,
    NO_EFFECT,
    BannedUser,
    Badge,
    Profile,
    User,
    UserBadge,
    UserRole,
)
from services.auth import end_user_sessions, get_ban, get_profile
from services.authorization import is_owner, is_protected_target

logger = logging.getLogger(__name__)


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _require_id(user: User) -> int:
    if user.id is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="User record missing identifier",
        )
    return user.id


async def ban_user(
    session: AsyncSession,
    target: User,
    *,
    actor_id: int,
    reason: str | None = None,
    now: datetime | None = None,
) -> BannedUser:
    """Insert or refresh the ban row and drop the target's tracked sessions."""
    if is_protected_target(target):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot ban admin or owner",
        )
    target_id = _require_id(target)
    banned_at = now or datetime.now(timezone.utc)
    ban_reason = (reason or "").strip() or DEFAULT_BAN_REASON

    ban = await get_ban(session, target_id)
    if ban is None:
        ban = BannedUser(
            user_id=target_id,
            reason=ban_reason,
            banned_by=actor_id,
            banned_at=banned_at,
        )
    else:
        ban.reason = ban_reason
        ban.banned_by = actor_id
        ban.banned_at = banned_at
    session.add(ban)
    await end_user_sessions(session, target_id)
    await session.flush()
    logger.info("User %s banned by %s", target_id, actor_id)
    return ban


async def unban_user(session: AsyncSession, target: User) -> bool:
    result = await session.execute(
        delete(BannedUser).where(_eq(BannedUser.user_id, _require_id(target)))
    )
    return bool(cast(Any, result).rowcount)


async def delete_user(session: AsyncSession, target: User, *, actor_id: int) -> None:
    if target.id == actor_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account",
        )
    if is_protected_target(target):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot delete admin or owner",
        )
    await session.delete(target)
    await session.flush()
    logger.info("User %s deleted by %s", target.id, actor_id)


async def ensure_promotable(session: AsyncSession, target: User) -> None:
    """Reject admin promotion while a ban row exists for ``target``."""
    if await get_ban(session, _require_id(target)) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot promote a banned user",
        )


def apply_status_change(
    target: User,
    *,
    actor_id: int,
    is_verified: bool | None = None,
    make_admin: bool | None = None,
) -> None:
    """Apply verification / admin flag changes with the role guardrails.

    Owners keep their role; only the owner surface can revoke an admin.
    """
    if make_admin is False:
        if target.id == actor_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot remove admin from yourself",
            )
        if is_protected_target(target):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cannot demote admin or owner",
            )
    if make_admin is True:
        if is_owner(target):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cannot change owner role",
            )
        target.role = UserRole.ADMIN.value

    if is_verified is not None:
        target.is_verified = is_verified


async def strip_profile_effects(
    session: AsyncSession,
    target: User,
    *,
    strip_background: bool = False,
    strip_effects: bool = False,
    strip_audio: bool = False,
) -> list[str]:
    """Reset the selected profile decorations; returns the stripped item names."""
    profile: Profile | None = await get_profile(session, _require_id(target))
    stripped: list[str] = []
    if profile is None:
        return stripped

    if strip_background:
        profile.background_image = None
        profile.background_video = None
        stripped.append("background")
    if strip_effects:
        profile.background_effect = NO_EFFECT
        profile.username_effect = NO_EFFECT
        profile.custom_cursor = None
        stripped.append("effects")
    if strip_audio:
        profile.background_audio = None
        stripped.append("audio")

    if stripped:
        session.add(profile)
        await session.flush()
    return stripped


@dataclass(frozen=True)
class BadgeAssignment:
    badge: Badge
    created: bool


async def get_badge(session: AsyncSession, badge_id: int) -> Badge | None:
    result = await session.execute(select(Badge).where(_eq(Badge.id, badge_id)))
    return result.scalar_one_or_none()


async def assign_badge(
    session: AsyncSession,
    target: User,
    badge: Badge,
    *,
    actor_id: int,
    is_monochrome: bool = False,
    now: datetime | None = None,
) -> BadgeAssignment:
    """Give ``badge`` to ``target`` at the end of their display order.

    Assigning a badge the user already holds is a no-op.
    """
    target_id = _require_id(target)
    existing = await session.execute(
        select(UserBadge).where(
            _eq(UserBadge.user_id, target_id),
            _eq(UserBadge.badge_id, badge.id),
        )
    )
    if existing.scalar_one_or_none() is not None:
        return BadgeAssignment(badge=badge, created=False)

    max_order = await session.execute(
        select(func.max(cast(Any, UserBadge.display_order))).where(
            _eq(UserBadge.user_id, target_id)
        )
    )
    current_max = max_order.scalar_one_or_none()
    session.add(
        UserBadge(
            user_id=target_id,
            badge_id=cast(int, badge.id),
            assigned_by=actor_id,
            display_order=0 if current_max is None else int(current_max) + 1,
            is_monochrome=is_monochrome,
            assigned_at=now or datetime.now(timezone.utc),
        )
    )
    await session.flush()
    return BadgeAssignment(badge=badge, created=True)


async def remove_badge(session: AsyncSession, target: User, badge_id: int) -> bool:
    result = await session.execute(
        delete(UserBadge).where(
            _eq(UserBadge.user_id, _require_id(target)),
            _eq(UserBadge.badge_id, badge_id),
        )
    )
    return bool(cast(Any, result).rowcount)


__all__ = [
    "BadgeAssignment",
    "apply_status_change",
    "assign_badge",
    "ban_user",
    "delete_user",
    "ensure_promotable",
    "get_badge",
    "remove_badge",
    "strip_profile_effects",
    "unban_user",
]
