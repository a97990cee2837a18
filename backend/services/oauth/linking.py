"""Resolve a Discord identity to a local account and route the callback."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, cast
from urllib.parse import urlencode

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core import settings
from models import User
from services.auth import (
    MAX_USERNAME_LENGTH,
    create_account,
    find_user_by_email,
    get_ban,
    next_uid,
    normalize_email,
    sanitize_username,
    start_session,
    username_taken,
)

from .discord import DiscordOAuthClient, DiscordProfile

logger = logging.getLogger(__name__)

PLACEHOLDER_EMAIL_DOMAIN = "discord.user"


class OAuthError(str, Enum):
    NO_CODE = "no_code"
    TOKEN_FAILED = "token_failed"
    USER_FAILED = "user_failed"
    OAUTH_FAILED = "oauth_failed"
    BANNED = "banned"


class LinkOutcome(str, Enum):
    LINKED = "linked"
    MERGED = "merged"
    CREATED = "created"


@dataclass(frozen=True)
class ResolveUserResult:
    user: User | None = None
    outcome: LinkOutcome | None = None
    error: OAuthError | None = None


@dataclass(frozen=True)
class CallbackResult:
    """Terminal state of the callback: a session token or an error code."""

    token: str | None = None
    error: OAuthError | None = None
    outcome: LinkOutcome | None = None


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def callback_redirect_url(result: CallbackResult) -> str:
    base = settings.frontend_url
    if result.token:
        return f"{base}/auth/callback?{urlencode({'token': result.token})}"
    error = result.error or OAuthError.OAUTH_FAILED
    return f"{base}/login?{urlencode({'error': error.value})}"


async def available_username(session: AsyncSession, handle: str, *, uid: int) -> str:
    """Sanitized ``handle`` (or ``user{uid}``) with the first free numeric suffix."""
    base = sanitize_username(handle)[:MAX_USERNAME_LENGTH] or f"user{uid}"
    candidate = base
    suffix = 0
    while await username_taken(session, candidate):
        suffix += 1
        tail = str(suffix)
        candidate = f"{base[: MAX_USERNAME_LENGTH - len(tail)]}{tail}"
    return candidate


async def _find_by_discord_id(session: AsyncSession, discord_id: str) -> User | None:
    result = await session.execute(select(User).where(_eq(User.discord_id, discord_id)))
    return result.scalar_one_or_none()


async def resolve_discord_user(
    session: AsyncSession, profile: DiscordProfile
) -> ResolveUserResult:
    """Find, merge or create the account for ``profile``; changes are flushed, not committed."""
    user = await _find_by_discord_id(session, profile.id)
    if user is not None:
        user.discord_username = profile.username or user.discord_username
        user.discord_avatar = profile.avatar
        session.add(user)
        await session.flush()
        return ResolveUserResult(user=user, outcome=LinkOutcome.LINKED)

    if profile.email:
        user = await find_user_by_email(session, profile.email)
        if user is not None:
            user.discord_id = profile.id
            user.discord_username = profile.username
            user.discord_avatar = profile.avatar
            session.add(user)
            await session.flush()
            logger.info("Linked Discord account %s to user %s", profile.id, user.id)
            return ResolveUserResult(user=user, outcome=LinkOutcome.MERGED)

    uid = await next_uid(session)
    username = await available_username(session, profile.username, uid=uid)
    email = (
        normalize_email(profile.email)
        if profile.email
        else f"{profile.id}@{PLACEHOLDER_EMAIL_DOMAIN}"
    )
    user = await create_account(
        session,
        username=username,
        email=email,
        password_hash=None,
        is_verified=True,
        discord_id=profile.id,
        discord_username=profile.username,
        discord_avatar=profile.avatar,
        uid=uid,
    )
    return ResolveUserResult(user=user, outcome=LinkOutcome.CREATED)


async def complete_discord_login(
    session: AsyncSession,
    client: DiscordOAuthClient,
    code: str | None,
) -> CallbackResult:
    if not code:
        return CallbackResult(error=OAuthError.NO_CODE)

    exchange = await client.exchange_code(code)
    if not exchange.ok or exchange.access_token is None:
        return CallbackResult(error=OAuthError.TOKEN_FAILED)

    fetched = await client.fetch_profile(exchange.access_token)
    if not fetched.ok or fetched.profile is None:
        return CallbackResult(error=OAuthError.USER_FAILED)

    try:
        resolved = await resolve_discord_user(session, fetched.profile)
        if resolved.user is None:
            return CallbackResult(error=resolved.error or OAuthError.OAUTH_FAILED)
        user_id = cast(int, resolved.user.id)
        if await get_ban(session, user_id) is not None:
            await session.rollback()
            logger.info("Refused Discord sign-in for banned user %s", user_id)
            return CallbackResult(error=OAuthError.BANNED)
        token = await start_session(session, resolved.user)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        logger.exception("Discord sign-in failed for Discord user %s", fetched.profile.id)
        return CallbackResult(error=OAuthError.OAUTH_FAILED)

    return CallbackResult(token=token, outcome=resolved.outcome)


__all__ = [
    "CallbackResult",
    "LinkOutcome",
    "OAuthError",
    "ResolveUserResult",
    "available_username",
    "callback_redirect_url",
    "complete_discord_login",
    "resolve_discord_user",
]
