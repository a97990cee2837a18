"""Shared FastAPI dependencies: database sessions, bearer auth and role gates."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from core import decode_token
from db import get_session
from models import User
from services.auth import get_user
from services.authorization import is_admin, is_owner

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthIdentity:
    """Claims carried by a verified session token."""

    user_id: int
    username: str
    uid: int
    is_admin: bool


async def get_db() -> AsyncIterator[AsyncSession]:
    async for session in get_session():
        yield session


def _invalid_token() -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token")


def identity_from_claims(payload: dict[str, Any]) -> AuthIdentity:
    user_id = payload.get("user_id")
    uid = payload.get("uid")
    username = payload.get("username")
    if not isinstance(user_id, int) or not isinstance(uid, int) or not isinstance(username, str):
        raise _invalid_token()
    if payload.get("sub") != str(user_id):
        raise _invalid_token()
    return AuthIdentity(
        user_id=user_id,
        username=username,
        uid=uid,
        is_admin=bool(payload.get("is_admin", False)),
    )


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthIdentity:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
        )
    try:
        payload = decode_token(credentials.credentials)
    except ValueError as exc:
        raise _invalid_token() from exc
    return identity_from_claims(payload)


async def get_current_user(
    identity: AuthIdentity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db),
) -> User:
    user = await get_user(session, identity.user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


async def require_verified(user: User = Depends(get_current_user)) -> User:
    if not user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Email verification required",
        )
    return user


async def require_admin(
    identity: AuthIdentity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db),
) -> User:
    # The role is read from storage so a demotion takes effect before the token expires.
    user = await get_user(session, identity.user_id)
    if user is None or not is_admin(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


async def require_owner(
    identity: AuthIdentity = Depends(get_current_identity),
    session: AsyncSession = Depends(get_db),
) -> User:
    user = await get_user(session, identity.user_id)
    if user is None or not is_owner(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Owner access required",
        )
    return user


__all__ = [
    "AuthIdentity",
    "bearer_scheme",
    "get_current_identity",
    "get_current_user",
    "get_db",
    "identity_from_claims",
    "require_admin",
    "require_owner",
    "require_verified",
]
