"""Admin moderation: bans, deletions and status changes."""

from typing import Any, cast

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from models import AuditLogEntry, BannedUser, Profile, User, UserRole, UserSession
from tests.factories import DEFAULT_PASSWORD, auth_headers, create_user


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


async def _audit_actions(session: AsyncSession) -> list[str]:
    result = await session.execute(
        select(AuditLogEntry).order_by(cast(Any, AuditLogEntry.id).asc())
    )
    return [entry.action for entry in result.scalars().all()]


@pytest.mark.asyncio
async def test_admin_routes_require_admin_role(async_client, db_session: AsyncSession):
    await create_user(db_session)
    member = await create_user(db_session)

    anonymous = await async_client.get("/api/v1/admin/stats")
    as_member = await async_client.get("/api/v1/admin/stats", headers=auth_headers(member))

    assert anonymous.status_code == 401
    assert as_member.status_code == 403
    assert as_member.json()["detail"] == "Admin access required"


@pytest.mark.asyncio
async def test_ban_blocks_login_until_unbanned(async_client, db_session: AsyncSession):
    owner = await create_user(db_session, username="alpha")
    target = await create_user(db_session, username="bravo")
    assert owner.uid == 1

    login = await async_client.post(
        "/api/v1/auth/login", json={"username": "bravo", "password": DEFAULT_PASSWORD}
    )
    assert login.status_code == 200

    ban_owner = await async_client.post(
        "/api/v1/admin/ban",
        json={"user_id": owner.id, "reason": "spam"},
        headers=auth_headers(owner),
    )
    assert ban_owner.status_code == 403

    ban = await async_client.post(
        "/api/v1/admin/ban",
        json={"user_id": target.id, "reason": "spam"},
        headers=auth_headers(owner),
    )
    assert ban.status_code == 200
    assert ban.json()["message"] == f"User bravo (UID: {target.uid}) has been banned"

    sessions = await db_session.execute(
        select(func.count()).select_from(UserSession).where(_eq(UserSession.user_id, target.id))
    )
    assert sessions.scalar_one() == 0

    blocked = await async_client.post(
        "/api/v1/auth/login", json={"username": "bravo", "password": DEFAULT_PASSWORD}
    )
    assert blocked.status_code == 403
    assert blocked.json()["detail"] == {"error": "Account is banned", "reason": "spam"}

    banned = await async_client.get("/api/v1/admin/banned", headers=auth_headers(owner))
    assert [row["username"] for row in banned.json()] == ["bravo"]
    assert banned.json()[0]["banned_by_username"] == "alpha"

    unban = await async_client.post(
        "/api/v1/admin/unban", json={"user_id": target.id}, headers=auth_headers(owner)
    )
    assert unban.status_code == 200

    allowed = await async_client.post(
        "/api/v1/auth/login", json={"username": "bravo", "password": DEFAULT_PASSWORD}
    )
    assert allowed.status_code == 200
    assert await _audit_actions(db_session) == ["BAN_USER", "UNBAN_USER"]


@pytest.mark.asyncio
async def test_rebanning_updates_reason_and_defaults_blank_reason(
    async_client, db_session: AsyncSession
):
    owner = await create_user(db_session)
    target = await create_user(db_session)
    target_id = target.id

    await async_client.post(
        "/api/v1/admin/ban", json={"user_id": target_id}, headers=auth_headers(owner)
    )
    first = await db_session.execute(select(BannedUser).where(_eq(BannedUser.user_id, target_id)))
    assert first.scalar_one().reason == "No reason provided"

    await async_client.post(
        "/api/v1/admin/ban",
        json={"user_id": target_id, "reason": "  repeat offender "},
        headers=auth_headers(owner),
    )
    db_session.expire_all()
    rows = await db_session.execute(select(BannedUser).where(_eq(BannedUser.user_id, target_id)))
    bans = rows.scalars().all()
    assert len(bans) == 1
    assert bans[0].reason == "repeat offender"


@pytest.mark.asyncio
async def test_admins_and_owner_cannot_be_banned(async_client, db_session: AsyncSession):
    owner = await create_user(db_session)
    admin = await create_user(db_session, role=UserRole.ADMIN)

    ban_owner = await async_client.post(
        "/api/v1/admin/ban", json={"user_id": owner.id}, headers=auth_headers(admin)
    )
    ban_admin = await async_client.post(
        "/api/v1/admin/ban", json={"user_id": admin.id}, headers=auth_headers(owner)
    )
    missing = await async_client.post(
        "/api/v1/admin/ban", json={"user_id": 99999}, headers=auth_headers(owner)
    )

    assert ban_owner.status_code == 403
    assert ban_owner.json()["detail"] == "Cannot ban admin or owner"
    assert ban_admin.status_code == 403
    assert missing.status_code == 404
    assert await _audit_actions(db_session) == []


@pytest.mark.asyncio
async def test_delete_user_cascades_and_is_audited(async_client, db_session: AsyncSession):
    owner = await create_user(db_session)
    target = await create_user(db_session, username="charlie")
    target_id = target.id

    response = await async_client.delete(
        f"/api/v1/admin/users/{target_id}", headers=auth_headers(owner)
    )

    assert response.status_code == 200
    assert response.json()["message"] == f"User charlie (UID: {target.uid}) deleted"
    db_session.expunge_all()
    gone = await db_session.execute(select(User).where(_eq(User.id, target_id)))
    assert gone.scalar_one_or_none() is None
    profile = await db_session.execute(select(Profile).where(_eq(Profile.user_id, target_id)))
    assert profile.scalar_one_or_none() is None

    entries = await db_session.execute(select(AuditLogEntry))
    entry = entries.scalar_one()
    assert entry.action == "DELETE_USER"
    assert entry.details == {"user_id": target_id, "username": "charlie", "uid": target.uid}


@pytest.mark.asyncio
async def test_delete_guards(async_client, db_session: AsyncSession):
    owner = await create_user(db_session)
    admin = await create_user(db_session, role=UserRole.ADMIN)

    self_delete = await async_client.delete(
        f"/api/v1/admin/users/{admin.id}", headers=auth_headers(admin)
    )
    protected = await async_client.delete(
        f"/api/v1/admin/users/{owner.id}", headers=auth_headers(admin)
    )
    missing = await async_client.delete("/api/v1/admin/users/4040", headers=auth_headers(owner))

    assert self_delete.status_code == 400
    assert self_delete.json()["detail"] == "Cannot delete your own account"
    assert protected.status_code == 403
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_status_update_verifies_and_promotes(async_client, db_session: AsyncSession):
    owner = await create_user(db_session)
    target = await create_user(db_session, verified=False)

    response = await async_client.put(
        f"/api/v1/admin/users/{target.id}/status",
        json={"is_verified": True, "is_admin": True},
        headers=auth_headers(owner),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["is_verified"] is True
    assert body["is_admin"] is True
    assert body["role"] == "admin"

    entries = await db_session.execute(select(AuditLogEntry))
    entry = entries.scalar_one()
    assert entry.action == "UPDATE_USER_STATUS"
    assert entry.details == {"is_verified": True, "is_admin": True}


@pytest.mark.asyncio
async def test_status_update_guardrails(async_client, db_session: AsyncSession):
    owner = await create_user(db_session)
    admin = await create_user(db_session, role=UserRole.ADMIN)
    other_admin = await create_user(db_session, role=UserRole.ADMIN)

    demote_self = await async_client.put(
        f"/api/v1/admin/users/{admin.id}/status",
        json={"is_admin": False},
        headers=auth_headers(admin),
    )
    demote_other = await async_client.put(
        f"/api/v1/admin/users/{other_admin.id}/status",
        json={"is_admin": False},
        headers=auth_headers(admin),
    )
    promote_owner = await async_client.put(
        f"/api/v1/admin/users/{owner.id}/status",
        json={"is_admin": True},
        headers=auth_headers(admin),
    )

    assert demote_self.status_code == 400
    assert demote_self.json()["detail"] == "Cannot remove admin from yourself"
    assert demote_other.status_code == 403
    assert demote_other.json()["detail"] == "Cannot demote admin or owner"
    assert promote_owner.status_code == 403
    assert promote_owner.json()["detail"] == "Cannot change owner role"

    await db_session.refresh(other_admin)
    assert other_admin.role == UserRole.ADMIN.value


@pytest.mark.asyncio
async def test_status_update_refuses_promoting_banned_user(
    async_client, db_session: AsyncSession
):
    owner = await create_user(db_session)
    target = await create_user(db_session)
    target_id = target.id

    ban = await async_client.post(
        "/api/v1/admin/ban", json={"user_id": target_id}, headers=auth_headers(owner)
    )
    assert ban.status_code == 200

    response = await async_client.put(
        f"/api/v1/admin/users/{target_id}/status",
        json={"is_admin": True},
        headers=auth_headers(owner),
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot promote a banned user"
    db_session.expire_all()
    refreshed = await db_session.execute(select(User).where(_eq(User.id, target_id)))
    assert refreshed.scalar_one().role == UserRole.USER.value
    bans = await db_session.execute(select(BannedUser).where(_eq(BannedUser.user_id, target_id)))
    assert len(bans.scalars().all()) == 1
    assert await _audit_actions(db_session) == ["BAN_USER"]


@pytest.mark.asyncio
async def test_status_update_can_unverify_user(async_client, db_session: AsyncSession):
    owner = await create_user(db_session)
    target = await create_user(db_session)

    response = await async_client.put(
        f"/api/v1/admin/users/{target.id}/status",
        json={"is_verified": False},
        headers=auth_headers(owner),
    )

    assert response.status_code == 200
    assert response.json()["is_verified"] is False
    assert response.json()["role"] == "user"


@pytest.mark.asyncio
async def test_strip_effects_resets_selected_items(async_client, db_session: AsyncSession):
    owner = await create_user(db_session)
    target = await create_user(db_session, username="delta")
    result = await db_session.execute(select(Profile).where(_eq(Profile.user_id, target.id)))
    profile = result.scalar_one()
    profile.background_image = "https://cdn.test/bg.png"
    profile.background_video = "https://cdn.test/bg.mp4"
    profile.background_audio = "https://cdn.test/song.mp3"
    profile.custom_cursor = "https://cdn.test/cursor.png"
    profile.background_effect = "snow"
    profile.username_effect = "rainbow"
    db_session.add(profile)
    await db_session.commit()

    response = await async_client.post(
        "/api/v1/admin/strip-effects",
        json={"user_id": target.id, "strip_background": True, "strip_effects": True},
        headers=auth_headers(owner),
    )

    assert response.status_code == 200
    assert response.json()["stripped"] == ["background", "effects"]

    await db_session.refresh(profile)
    assert profile.background_image is None
    assert profile.background_video is None
    assert profile.custom_cursor is None
    assert profile.background_effect == "none"
    assert profile.username_effect == "none"
    assert profile.background_audio == "https://cdn.test/song.mp3"


@pytest.mark.asyncio
async def test_strip_effects_with_nothing_selected(async_client, db_session: AsyncSession):
    owner = await create_user(db_session)
    target = await create_user(db_session)

    response = await async_client.post(
        "/api/v1/admin/strip-effects",
        json={"user_id": target.id},
        headers=auth_headers(owner),
    )

    assert response.status_code == 200
    assert response.json()["stripped"] == []
