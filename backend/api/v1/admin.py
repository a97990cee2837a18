"""Admin back office endpoints."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Literal, NoReturn, cast

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import String, func, or_, select
from sqlalchemy import cast as sa_cast
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from sqlalchemy.sql import ColumnElement

from api.deps import get_db, require_admin
from db.errors import is_unique_violation
from models import (
    DEFAULT_BADGE_COLOR,
    OWNER_UID,
    Badge,
    BannedUser,
    Link,
    Profile,
    User,
    UserBadge,
    UserRole,
)
from services.audit import AuditAction, count_audit_entries, list_audit_entries, record_action
from services.auth import get_profile, get_user, get_user_by_uid
from services.email import EmailDeliveryError, admin_message_email, get_email_sender, send_best_effort
from services.moderation import (
    apply_status_change,
    assign_badge,
    ban_user,
    delete_user,
    ensure_promotable,
    get_badge,
    remove_badge,
    strip_profile_effects,
    unban_user,
)
from .auth import ProfileResponse, UserResponse, user_response
from .pagination import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    PaginationMeta,
    page_offset,
    pagination_meta,
)

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 10


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _ilike(column: Any, pattern: str) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column.ilike(pattern, escape="\\"))


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


def _asc(column: Any) -> Any:
    return cast(Any, column).asc()


def _actor_id(admin: User) -> int:
    if admin.id is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="User record missing identifier",
        )
    return admin.id


def _raise_user_not_found() -> NoReturn:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


def _raise_badge_not_found() -> NoReturn:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Badge not found")


async def _load_target(session: AsyncSession, user_id: int) -> User:
    target = await get_user(session, user_id)
    if target is None:
        _raise_user_not_found()
    return target


class StatsResponse(BaseModel):
    total_users: int
    verified_users: int
    total_profiles: int
    total_links: int
    total_views: int
    total_clicks: int
    banned_users: int
    total_badges: int
    assigned_badges: int
    new_users_today: int
    new_users_week: int


class AdminUserRow(BaseModel):
    id: int
    username: str
    email: str
    uid: int
    role: str
    is_admin: bool
    is_verified: bool
    discord_id: str | None = None
    discord_username: str | None = None
    created_at: datetime | None = None
    view_count: int = 0
    link_count: int = 0
    badge_count: int = 0
    is_banned: bool = False
    ban_reason: str | None = None


class UserListResponse(BaseModel):
    users: list[AdminUserRow]
    pagination: PaginationMeta


class AdminUserDetail(UserResponse):
    discord_id: str | None = None
    discord_username: str | None = None
    discord_avatar: str | None = None
    created_at: datetime | None = None
    is_banned: bool = False
    ban_reason: str | None = None
    banned_at: datetime | None = None
    profile: ProfileResponse | None = None


class LinkRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    url: str
    position: int
    clicks: int
    created_at: datetime | None = None


class UserBadgeRow(BaseModel):
    id: int
    name: str
    description: str
    icon: str
    color: str
    is_monochrome: bool
    display_order: int
    assigned_at: datetime | None = None
    assigned_by_username: str | None = None


class UserDetailResponse(BaseModel):
    user: AdminUserDetail
    links: list[LinkRow]
    badges: list[UserBadgeRow]


class UserByUidResponse(BaseModel):
    user: AdminUserDetail
    badges: list[UserBadgeRow]


class MessageResponse(BaseModel):
    message: str


class StatusUpdateRequest(BaseModel):
    is_verified: bool | None = None
    is_admin: bool | None = None


class BanRequest(BaseModel):
    user_id: int
    reason: str | None = Field(default=None, max_length=500)


class UnbanRequest(BaseModel):
    user_id: int


class BannedUserRow(BaseModel):
    user_id: int
    username: str
    email: str
    uid: int
    reason: str
    banned_at: datetime | None = None
    banned_by: int | None = None
    banned_by_username: str | None = None


class BadgeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    icon: str
    color: str
    created_at: datetime | None = None
    assigned_count: int = 0


class BadgeCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    icon: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=255)
    color: str = Field(default=DEFAULT_BADGE_COLOR, min_length=1, max_length=20)


class BadgeUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=50)
    icon: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=255)
    color: str | None = Field(default=None, min_length=1, max_length=20)


class AssignBadgeRequest(BaseModel):
    badge_id: int
    is_monochrome: bool = False


class SendEmailRequest(BaseModel):
    user_id: int
    subject: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=10_000)
    from_name: str | None = Field(default=None, max_length=100)


class BulkEmailRequest(BaseModel):
    subject: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=10_000)
    filter: Literal["verified", "admins"] | None = None
    from_name: str | None = Field(default=None, max_length=100)


class BulkEmailResponse(BaseModel):
    message: str
    sent: int
    failed: int


class StripEffectsRequest(BaseModel):
    user_id: int
    strip_background: bool = False
    strip_effects: bool = False
    strip_audio: bool = False


class StripEffectsResponse(BaseModel):
    message: str
    stripped: list[str]


class AuditLogResponseRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    admin_id: int | None = None
    admin_username: str | None = None
    action: str
    target_user_id: int | None = None
    target_username: str | None = None
    target_uid: int | None = None
    details: dict[str, Any]
    created_at: datetime | None = None


class AuditLogListResponse(BaseModel):
    logs: list[AuditLogResponseRow]
    pagination: PaginationMeta


class RecentUser(BaseModel):
    id: int
    username: str
    email: str
    uid: int
    created_at: datetime | None = None


class RecentLink(BaseModel):
    id: int
    title: str
    url: str
    created_at: datetime | None = None
    username: str
    uid: int


class RecentBadge(BaseModel):
    assigned_at: datetime | None = None
    badge_name: str
    badge_icon: str
    username: str
    uid: int
    assigned_by: str | None = None


class RecentBan(BaseModel):
    banned_at: datetime | None = None
    reason: str
    username: str
    uid: int
    banned_by: str | None = None


class ActivityResponse(BaseModel):
    recent_users: list[RecentUser]
    recent_links: list[RecentLink]
    recent_badges: list[RecentBadge]
    recent_bans: list[RecentBan]


async def _count(session: AsyncSession, model: Any, *criteria: ColumnElement[bool]) -> int:
    stmt = select(func.count()).select_from(model)
    if criteria:
        stmt = stmt.where(*criteria)
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def _sum(session: AsyncSession, column: Any) -> int:
    result = await session.execute(select(func.coalesce(func.sum(column), 0)))
    return int(result.scalar_one())


def _admin_detail(user: User, ban: BannedUser | None, profile: Profile | None) -> AdminUserDetail:
    return AdminUserDetail(
        **user_response(user).model_dump(),
        discord_id=user.discord_id,
        discord_username=user.discord_username,
        discord_avatar=user.discord_avatar,
        created_at=user.created_at,
        is_banned=ban is not None,
        ban_reason=ban.reason if ban is not None else None,
        banned_at=ban.banned_at if ban is not None else None,
        profile=ProfileResponse.model_validate(profile) if profile is not None else None,
    )


async def _user_with_ban(session: AsyncSession, user_id: int) -> tuple[User, BannedUser | None]:
    result = await session.execute(
        select(User, BannedUser)
        .outerjoin(BannedUser, _eq(BannedUser.user_id, User.id))
        .where(_eq(User.id, user_id))
    )
    row = result.first()
    if row is None:
        _raise_user_not_found()
    return row[0], row[1]


async def _user_badges(session: AsyncSession, user_id: int) -> list[UserBadgeRow]:
    assigner = aliased(User)
    result = await session.execute(
        select(Badge, UserBadge, cast(Any, assigner.username))
        .join(UserBadge, _eq(UserBadge.badge_id, Badge.id))
        .outerjoin(assigner, _eq(assigner.id, UserBadge.assigned_by))
        .where(_eq(UserBadge.user_id, user_id))
        .order_by(_asc(UserBadge.display_order), _asc(UserBadge.id))
    )
    return [
        UserBadgeRow(
            id=cast(int, badge.id),
            name=badge.name,
            description=badge.description,
            icon=badge.icon,
            color=badge.color,
            is_monochrome=assignment.is_monochrome,
            display_order=assignment.display_order,
            assigned_at=assignment.assigned_at,
            assigned_by_username=assigned_by_username,
        )
        for badge, assignment, assigned_by_username in result.all()
    ]


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> StatsResponse:
    now = datetime.now(timezone.utc)
    created_at_column = cast(Any, User.created_at)
    return StatsResponse(
        total_users=await _count(session, User),
        verified_users=await _count(session, User, _eq(User.is_verified, True)),
        total_profiles=await _count(session, Profile),
        total_links=await _count(session, Link),
        total_views=await _sum(session, Profile.view_count),
        total_clicks=await _sum(session, Link.clicks),
        banned_users=await _count(session, BannedUser),
        total_badges=await _count(session, Badge),
        assigned_badges=await _count(session, UserBadge),
        new_users_today=await _count(
            session, User, created_at_column > now - timedelta(hours=24)
        ),
        new_users_week=await _count(session, User, created_at_column > now - timedelta(days=7)),
    )


@router.get("/users", response_model=UserListResponse)
async def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    search: str | None = Query(default=None, max_length=100),
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> UserListResponse:
    link_count = (
        select(func.count())
        .select_from(Link)
        .where(_eq(Link.user_id, User.id))
        .scalar_subquery()
    )
    badge_count = (
        select(func.count())
        .select_from(UserBadge)
        .where(_eq(UserBadge.user_id, User.id))
        .scalar_subquery()
    )

    filters: list[ColumnElement[bool]] = []
    term = (search or "").strip()
    if term:
        pattern = f"%{_escape_like(term)}%"
        filters.append(
            cast(
                ColumnElement[bool],
                or_(
                    _ilike(cast(Any, User.username), pattern),
                    _ilike(cast(Any, User.email), pattern),
                    _ilike(sa_cast(cast(Any, User.uid), String), pattern),
                ),
            )
        )

    result = await session.execute(
        select(
            User,
            cast(Any, Profile.view_count),
            link_count.label("link_count"),
            badge_count.label("badge_count"),
            cast(Any, BannedUser.reason),
            cast(Any, BannedUser.id),
        )
        .outerjoin(Profile, _eq(Profile.user_id, User.id))
        .outerjoin(BannedUser, _eq(BannedUser.user_id, User.id))
        .where(*filters)
        .order_by(_desc(User.created_at), _desc(User.id))
        .offset(page_offset(page, limit))
        .limit(limit)
    )
    rows = [
        AdminUserRow(
            **user_response(user).model_dump(),
            discord_id=user.discord_id,
            discord_username=user.discord_username,
            created_at=user.created_at,
            view_count=view_count or 0,
            link_count=links,
            badge_count=badges,
            is_banned=ban_id is not None,
            ban_reason=ban_reason,
        )
        for user, view_count, links, badges, ban_reason, ban_id in result.all()
    ]
    total = await _count(session, User, *filters)
    return UserListResponse(users=rows, pagination=pagination_meta(page=page, limit=limit, total=total))


@router.get("/users/uid/{uid}", response_model=UserByUidResponse)
async def get_user_by_uid_detail(
    uid: int,
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> UserByUidResponse:
    user = await get_user_by_uid(session, uid)
    if user is None or user.id is None:
        _raise_user_not_found()
    user, ban = await _user_with_ban(session, cast(int, user.id))
    profile = await get_profile(session, cast(int, user.id))
    return UserByUidResponse(
        user=_admin_detail(user, ban, profile),
        badges=await _user_badges(session, cast(int, user.id)),
    )


@router.get("/users/{user_id}", response_model=UserDetailResponse)
async def get_user_detail(
    user_id: int,
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> UserDetailResponse:
    user, ban = await _user_with_ban(session, user_id)
    profile = await get_profile(session, user_id)
    links = await session.execute(
        select(Link)
        .where(_eq(Link.user_id, user_id))
        .order_by(_asc(Link.position), _asc(Link.id))
    )
    return UserDetailResponse(
        user=_admin_detail(user, ban, profile),
        links=[LinkRow.model_validate(link) for link in links.scalars().all()],
        badges=await _user_badges(session, user_id),
    )


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user_account(
    user_id: int,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    actor_id = _actor_id(admin)
    target = await _load_target(session, user_id)
    username, uid = target.username, target.uid
    await delete_user(session, target, actor_id=actor_id)
    await session.commit()

    await record_action(
        session,
        actor_id=actor_id,
        action=AuditAction.DELETE_USER,
        details={"user_id": user_id, "username": username, "uid": uid},
    )
    return MessageResponse(message=f"User {username} (UID: {uid}) deleted")


@router.put("/users/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: int,
    payload: StatusUpdateRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> UserResponse:
    actor_id = _actor_id(admin)
    target = await _load_target(session, user_id)
    if payload.is_admin:
        await ensure_promotable(session, target)
    apply_status_change(
        target,
        actor_id=actor_id,
        is_verified=payload.is_verified,
        make_admin=payload.is_admin,
    )
    session.add(target)
    await session.commit()

    await record_action(
        session,
        actor_id=actor_id,
        action=AuditAction.UPDATE_USER_STATUS,
        target_user_id=user_id,
        details=payload.model_dump(exclude_none=True),
    )
    return user_response(target)


@router.post("/ban", response_model=MessageResponse)
async def ban_account(
    payload: BanRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    actor_id = _actor_id(admin)
    target = await _load_target(session, payload.user_id)
    ban = await ban_user(session, target, actor_id=actor_id, reason=payload.reason)
    await session.commit()

    await record_action(
        session,
        actor_id=actor_id,
        action=AuditAction.BAN_USER,
        target_user_id=payload.user_id,
        details={"reason": ban.reason},
    )
    return MessageResponse(message=f"User {target.username} (UID: {target.uid}) has been banned")


@router.post("/unban", response_model=MessageResponse)
async def unban_account(
    payload: UnbanRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    actor_id = _actor_id(admin)
    target = await _load_target(session, payload.user_id)
    await unban_user(session, target)
    await session.commit()

    await record_action(
        session,
        actor_id=actor_id,
        action=AuditAction.UNBAN_USER,
        target_user_id=payload.user_id,
    )
    return MessageResponse(
        message=f"User {target.username} (UID: {target.uid}) has been unbanned"
    )


@router.get("/banned", response_model=list[BannedUserRow])
async def list_banned_users(
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> list[BannedUserRow]:
    banning_admin = aliased(User)
    result = await session.execute(
        select(BannedUser, User, cast(Any, banning_admin.username))
        .join(User, _eq(User.id, BannedUser.user_id))
        .outerjoin(banning_admin, _eq(banning_admin.id, BannedUser.banned_by))
        .order_by(_desc(BannedUser.banned_at), _desc(BannedUser.id))
    )
    return [
        BannedUserRow(
            user_id=ban.user_id,
            username=user.username,
            email=user.email,
            uid=user.uid,
            reason=ban.reason,
            banned_at=ban.banned_at,
            banned_by=ban.banned_by,
            banned_by_username=banned_by_username,
        )
        for ban, user, banned_by_username in result.all()
    ]


@router.get("/badges", response_model=list[BadgeResponse])
async def list_badges(
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> list[BadgeResponse]:
    assigned_count = (
        select(func.count())
        .select_from(UserBadge)
        .where(_eq(UserBadge.badge_id, Badge.id))
        .scalar_subquery()
    )
    result = await session.execute(
        select(Badge, assigned_count.label("assigned_count")).order_by(_asc(Badge.name))
    )
    return [
        BadgeResponse(
            id=cast(int, badge.id),
            name=badge.name,
            description=badge.description,
            icon=badge.icon,
            color=badge.color,
            created_at=badge.created_at,
            assigned_count=count,
        )
        for badge, count in result.all()
    ]


async def _badge_name_taken(
    session: AsyncSession, name: str, *, exclude_id: int | None = None
) -> bool:
    stmt = select(cast(Any, Badge.id)).where(_eq(Badge.name, name))
    if exclude_id is not None:
        stmt = stmt.where(cast(ColumnElement[bool], cast(Any, Badge.id) != exclude_id))
    result = await session.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


def _raise_duplicate_badge(exc: Exception | None = None) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Badge with this name already exists",
    ) from exc


async def _commit_badge(session: AsyncSession, badge: Badge) -> None:
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_unique_violation(exc):
            _raise_duplicate_badge(exc)
        raise
    await session.refresh(badge)


@router.post("/badges", status_code=status.HTTP_201_CREATED, response_model=BadgeResponse)
async def create_badge(
    payload: BadgeCreateRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> BadgeResponse:
    name = payload.name.strip()
    if await _badge_name_taken(session, name):
        _raise_duplicate_badge()
    badge = Badge(
        name=name,
        description=payload.description,
        icon=payload.icon,
        color=payload.color,
    )
    session.add(badge)
    await _commit_badge(session, badge)

    await record_action(
        session,
        actor_id=_actor_id(admin),
        action=AuditAction.CREATE_BADGE,
        details={"badge_id": badge.id, "name": badge.name, "icon": badge.icon, "color": badge.color},
    )
    return BadgeResponse.model_validate(badge)


@router.put("/badges/{badge_id}", response_model=BadgeResponse)
async def update_badge(
    badge_id: int,
    payload: BadgeUpdateRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> BadgeResponse:
    badge = await get_badge(session, badge_id)
    if badge is None:
        _raise_badge_not_found()

    changes = payload.model_dump(exclude_none=True)
    if "name" in changes:
        changes["name"] = changes["name"].strip()
        if await _badge_name_taken(session, changes["name"], exclude_id=badge_id):
            _raise_duplicate_badge()
    for field_name, value in changes.items():
        setattr(badge, field_name, value)
    session.add(badge)
    await _commit_badge(session, badge)

    await record_action(
        session,
        actor_id=_actor_id(admin),
        action=AuditAction.UPDATE_BADGE,
        details={"badge_id": badge_id, **changes},
    )
    return BadgeResponse.model_validate(badge)


@router.delete("/badges/{badge_id}", response_model=MessageResponse)
async def delete_badge(
    badge_id: int,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    badge = await get_badge(session, badge_id)
    if badge is None:
        _raise_badge_not_found()
    name = badge.name
    await session.delete(badge)
    await session.commit()

    await record_action(
        session,
        actor_id=_actor_id(admin),
        action=AuditAction.DELETE_BADGE,
        details={"badge_id": badge_id, "name": name},
    )
    return MessageResponse(message=f'Badge "{name}" deleted')


@router.post("/users/{user_id}/badges", response_model=MessageResponse)
async def assign_user_badge(
    user_id: int,
    payload: AssignBadgeRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    actor_id = _actor_id(admin)
    target = await _load_target(session, user_id)
    badge = await get_badge(session, payload.badge_id)
    if badge is None:
        _raise_badge_not_found()
    await assign_badge(
        session,
        target,
        badge,
        actor_id=actor_id,
        is_monochrome=payload.is_monochrome,
    )
    await session.commit()

    await record_action(
        session,
        actor_id=actor_id,
        action=AuditAction.ASSIGN_BADGE,
        target_user_id=user_id,
        details={"badge_id": payload.badge_id, "badge_name": badge.name},
    )
    return MessageResponse(
        message=f'Badge "{badge.name}" assigned to {target.username} (UID: {target.uid})'
    )


@router.delete("/users/{user_id}/badges/{badge_id}", response_model=MessageResponse)
async def remove_user_badge(
    user_id: int,
    badge_id: int,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    actor_id = _actor_id(admin)
    target = await _load_target(session, user_id)
    badge = await get_badge(session, badge_id)
    await remove_badge(session, target, badge_id)
    await session.commit()

    await record_action(
        session,
        actor_id=actor_id,
        action=AuditAction.REMOVE_BADGE,
        target_user_id=user_id,
        details={"badge_id": badge_id, "badge_name": badge.name if badge else None},
    )
    return MessageResponse(message=f"Badge removed from {target.username} (UID: {target.uid})")


@router.post("/send-email", response_model=MessageResponse)
async def send_user_email(
    payload: SendEmailRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    target = await _load_target(session, payload.user_id)
    message = admin_message_email(
        target.email,
        target.username,
        subject=payload.subject,
        message=payload.message,
        from_name=payload.from_name,
    )
    try:
        await get_email_sender().send(message)
    except EmailDeliveryError as exc:
        logger.warning("Admin email to user %s failed: %s", payload.user_id, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to send email",
        ) from exc

    await record_action(
        session,
        actor_id=_actor_id(admin),
        action=AuditAction.SEND_EMAIL,
        target_user_id=payload.user_id,
        details={"subject": payload.subject},
    )
    return MessageResponse(message=f"Email sent to {target.username} ({target.email})")


@router.post("/send-bulk-email", response_model=BulkEmailResponse)
async def send_bulk_email(
    payload: BulkEmailRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> BulkEmailResponse:
    stmt = select(User).where(_eq(User.is_verified, True))
    if payload.filter == "admins":
        stmt = stmt.where(
            or_(
                cast(Any, User.role).in_([UserRole.ADMIN.value, UserRole.OWNER.value]),
                _eq(User.uid, OWNER_UID),
            )
        )
    result = await session.execute(stmt.order_by(_asc(User.id)))
    recipients = result.scalars().all()

    sent = 0
    for recipient in recipients:
        delivered = await send_best_effort(
            admin_message_email(
                recipient.email,
                recipient.username,
                subject=payload.subject,
                message=payload.message,
                from_name=payload.from_name,
            )
        )
        if delivered:
            sent += 1
    failed = len(recipients) - sent
    if failed:
        logger.warning("Bulk email %r: %s of %s deliveries failed", payload.subject, failed, len(recipients))

    await record_action(
        session,
        actor_id=_actor_id(admin),
        action=AuditAction.SEND_BULK_EMAIL,
        details={"subject": payload.subject, "filter": payload.filter, "sent_count": sent},
    )
    return BulkEmailResponse(message=f"Sent {sent} emails", sent=sent, failed=failed)


@router.post("/strip-effects", response_model=StripEffectsResponse)
async def strip_effects(
    payload: StripEffectsRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> StripEffectsResponse:
    target = await _load_target(session, payload.user_id)
    stripped = await strip_profile_effects(
        session,
        target,
        strip_background=payload.strip_background,
        strip_effects=payload.strip_effects,
        strip_audio=payload.strip_audio,
    )
    await session.commit()

    await record_action(
        session,
        actor_id=_actor_id(admin),
        action=AuditAction.STRIP_EFFECTS,
        target_user_id=payload.user_id,
        details={"stripped_items": stripped},
    )
    return StripEffectsResponse(
        message=f"Stripped {', '.join(stripped) or 'nothing'} from {target.username} (UID: {target.uid})",
        stripped=stripped,
    )


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def get_audit_logs(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> AuditLogListResponse:
    entries = await list_audit_entries(session, offset=page_offset(page, limit), limit=limit)
    total = await count_audit_entries(session)
    return AuditLogListResponse(
        logs=[AuditLogResponseRow.model_validate(entry) for entry in entries],
        pagination=pagination_meta(page=page, limit=limit, total=total),
    )


@router.get("/activity", response_model=ActivityResponse)
async def get_activity(
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> ActivityResponse:
    users = await session.execute(
        select(User)
        .order_by(_desc(User.created_at), _desc(User.id))
        .limit(RECENT_ACTIVITY_LIMIT)
    )
    links = await session.execute(
        select(Link, User)
        .join(User, _eq(User.id, Link.user_id))
        .order_by(_desc(Link.created_at), _desc(Link.id))
        .limit(RECENT_ACTIVITY_LIMIT)
    )
    assigner = aliased(User)
    badges = await session.execute(
        select(UserBadge, Badge, User, cast(Any, assigner.username))
        .join(Badge, _eq(Badge.id, UserBadge.badge_id))
        .join(User, _eq(User.id, UserBadge.user_id))
        .outerjoin(assigner, _eq(assigner.id, UserBadge.assigned_by))
        .order_by(_desc(UserBadge.assigned_at), _desc(UserBadge.id))
        .limit(RECENT_ACTIVITY_LIMIT)
    )
    banning_admin = aliased(User)
    bans = await session.execute(
        select(BannedUser, User, cast(Any, banning_admin.username))
        .join(User, _eq(User.id, BannedUser.user_id))
        .outerjoin(banning_admin, _eq(banning_admin.id, BannedUser.banned_by))
        .order_by(_desc(BannedUser.banned_at), _desc(BannedUser.id))
        .limit(RECENT_ACTIVITY_LIMIT)
    )
    return ActivityResponse(
        recent_users=[
            RecentUser(
                id=cast(int, user.id),
                username=user.username,
                email=user.email,
                uid=user.uid,
                created_at=user.created_at,
            )
            for user in users.scalars().all()
        ],
        recent_links=[
            RecentLink(
                id=cast(int, link.id),
                title=link.title,
                url=link.url,
                created_at=link.created_at,
                username=owner.username,
                uid=owner.uid,
            )
            for link, owner in links.all()
        ],
        recent_badges=[
            RecentBadge(
                assigned_at=assignment.assigned_at,
                badge_name=badge.name,
                badge_icon=badge.icon,
                username=holder.username,
                uid=holder.uid,
                assigned_by=assigned_by,
            )
            for assignment, badge, holder, assigned_by in badges.all()
        ],
        recent_bans=[
            RecentBan(
                banned_at=ban.banned_at,
                reason=ban.reason,
                username=banned.username,
                uid=banned.uid,
                banned_by=banned_by,
            )
            for ban, banned, banned_by in bans.all()
        ],
    )
