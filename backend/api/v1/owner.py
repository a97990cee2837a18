"""Owner-only surface for elevating and revoking admins."""

from __future__ import annotations

import logging
import secrets
from typing import Any, cast

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from api.deps import get_current_user, get_db, require_owner
from core import settings
from models import User, UserRole
from services.audit import AuditAction, record_action
from services.auth import get_user_by_uid
from services.authorization import is_owner
from services.moderation import ensure_promotable

router = APIRouter(prefix="/admin/owner", tags=["owner"])
logger = logging.getLogger(__name__)


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


class OwnerVerifyRequest(BaseModel):
    secret: str = Field(max_length=256)


class OwnerVerifyResponse(BaseModel):
    message: str
    role: str


class GrantAdminRequest(BaseModel):
    uid: int | None = Field(default=None, ge=1)
    discord_id: str | None = Field(default=None, max_length=32)


class RevokeAdminRequest(BaseModel):
    uid: int = Field(ge=1)


class MessageResponse(BaseModel):
    message: str


def owner_secret_matches(candidate: str) -> bool:
    """Constant-time comparison; an unconfigured secret never matches."""
    expected = settings.owner_secret
    if not expected or not candidate:
        return False
    return secrets.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


@router.post("/verify", response_model=OwnerVerifyResponse)
async def verify_owner(
    payload: OwnerVerifyRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> OwnerVerifyResponse:
    if not owner_secret_matches(payload.secret):
        logger.warning("Rejected owner secret from user %s", current_user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid secret")

    current_user.role = UserRole.OWNER.value
    session.add(current_user)
    await session.commit()
    logger.info("User %s granted owner access", current_user.id)

    await record_action(
        session,
        actor_id=current_user.id,
        action=AuditAction.OWNER_ACCESS,
        details={"method": "secret_key"},
    )
    return OwnerVerifyResponse(message="Owner access granted", role=UserRole.OWNER.value)


@router.post("/grant-admin", response_model=MessageResponse)
async def grant_admin(
    payload: GrantAdminRequest,
    owner: User = Depends(require_owner),
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    discord_id = (payload.discord_id or "").strip()
    if payload.uid is None and not discord_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="UID or Discord ID required",
        )

    target: User | None
    if payload.uid is not None:
        target = await get_user_by_uid(session, payload.uid)
    else:
        result = await session.execute(select(User).where(_eq(User.discord_id, discord_id)))
        target = result.scalar_one_or_none()
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if not is_owner(target):
        await ensure_promotable(session, target)
        target.role = UserRole.ADMIN.value
        session.add(target)
        await session.commit()

    await record_action(
        session,
        actor_id=owner.id,
        action=AuditAction.GRANT_ADMIN,
        target_user_id=target.id,
        details=payload.model_dump(exclude_none=True),
    )
    return MessageResponse(message=f"Admin granted to {target.username}")


@router.post("/revoke-admin", response_model=MessageResponse)
async def revoke_admin(
    payload: RevokeAdminRequest,
    owner: User = Depends(require_owner),
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    target = await get_user_by_uid(session, payload.uid)
    if target is None or is_owner(target):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found or is owner",
        )

    target.role = UserRole.USER.value
    session.add(target)
    await session.commit()

    await record_action(
        session,
        actor_id=owner.id,
        action=AuditAction.REVOKE_ADMIN,
        target_user_id=target.id,
        details={"uid": payload.uid},
    )
    return MessageResponse(message=f"Admin revoked from {target.username}")
