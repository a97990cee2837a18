"""Read-only admin views: stats, user listings, activity and the audit log."""

from typing import Any, cast

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from models import BannedUser, Link, Profile
from services.audit import AuditAction, record_action
from tests.factories import auth_headers, create_user


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


async def _add_links(session: AsyncSession, user_id: int, *clicks: int) -> None:
    for position, click_count in enumerate(clicks):
        session.add(
            Link(
                user_id=user_id,
                title=f"Link {position}",
                url=f"https://example.com/{position}",
                position=position,
                clicks=click_count,
            )
        )
    await session.commit()


@pytest.mark.asyncio
async def test_stats_counts(async_client, db_session: AsyncSession):
    owner = await create_user(db_session)
    member = await create_user(db_session)
    banned = await create_user(db_session, verified=False)
    assert member.id is not None and banned.id is not None
    await _add_links(db_session, member.id, 3, 4)
    result = await db_session.execute(select(Profile).where(_eq(Profile.user_id, member.id)))
    profile = result.scalar_one()
    profile.view_count = 12
    db_session.add(profile)
    db_session.add(BannedUser(user_id=banned.id, reason="spam"))
    await db_session.commit()

    response = await async_client.get("/api/v1/admin/stats", headers=auth_headers(owner))

    assert response.status_code == 200
    assert response.json() == {
        "total_users": 3,
        "verified_users": 2,
        "total_profiles": 3,
        "total_links": 2,
        "total_views": 12,
        "total_clicks": 7,
        "banned_users": 1,
        "total_badges": 0,
        "assigned_badges": 0,
        "new_users_today": 3,
        "new_users_week": 3,
    }


@pytest.mark.asyncio
async def test_user_list_pagination(async_client, db_session: AsyncSession):
    owner = await create_user(db_session)
    for _ in range(4):
        await create_user(db_session)

    first = await async_client.get(
        "/api/v1/admin/users", params={"page": 1, "limit": 2}, headers=auth_headers(owner)
    )
    last = await async_client.get(
        "/api/v1/admin/users", params={"page": 3, "limit": 2}, headers=auth_headers(owner)
    )

    assert first.status_code == 200
    assert first.json()["pagination"] == {"page": 1, "limit": 2, "total": 5, "pages": 3}
    assert len(first.json()["users"]) == 2
    assert len(last.json()["users"]) == 1

    seen = {row["id"] for row in first.json()["users"]} | {
        row["id"] for row in last.json()["users"]
    }
    assert len(seen) == 3


@pytest.mark.asyncio
async def test_user_list_limit_is_capped(async_client, db_session: AsyncSession):
    owner = await create_user(db_session)

    response = await async_client.get(
        "/api/v1/admin/users", params={"limit": 101}, headers=auth_headers(owner)
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_user_search_matches_username_email_and_uid(
    async_client, db_session: AsyncSession
):
    owner = await create_user(db_session, username="owner", email="owner@example.com")
    await create_user(db_session, username="hotel", email="hotel@example.com")
    await create_user(db_session, username="india", email="contact@hotel-india.test")
    headers = auth_headers(owner)

    by_name = await async_client.get(
        "/api/v1/admin/users", params={"search": "HOTEL"}, headers=headers
    )
    by_uid = await async_client.get("/api/v1/admin/users", params={"search": "3"}, headers=headers)

    assert sorted(row["username"] for row in by_name.json()["users"]) == ["hotel", "india"]
    assert by_name.json()["pagination"]["total"] == 2
    assert [row["uid"] for row in by_uid.json()["users"]] == [3]


@pytest.mark.asyncio
async def test_user_search_treats_wildcards_literally(async_client, db_session: AsyncSession):
    owner = await create_user(db_session, username="owner", email="owner@example.com")
    await create_user(db_session, username="lima_one", email="lima1@example.com")
    await create_user(db_session, username="limaxone", email="lima2@example.com")
    headers = auth_headers(owner)

    underscore = await async_client.get(
        "/api/v1/admin/users", params={"search": "lima_"}, headers=headers
    )
    percent = await async_client.get("/api/v1/admin/users", params={"search": "%"}, headers=headers)

    assert [row["username"] for row in underscore.json()["users"]] == ["lima_one"]
    assert percent.json()["users"] == []
    assert percent.json()["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_user_list_row_aggregates(async_client, db_session: AsyncSession):
    owner = await create_user(db_session)
    target = await create_user(db_session, username="juliet")
    assert target.id is not None
    await _add_links(db_session, target.id, 0, 0, 0)
    db_session.add(BannedUser(user_id=target.id, reason="impersonation"))
    await db_session.commit()

    response = await async_client.get(
        "/api/v1/admin/users", params={"search": "juliet"}, headers=auth_headers(owner)
    )

    [row] = response.json()["users"]
    assert row["link_count"] == 3
    assert row["badge_count"] == 0
    assert row["is_banned"] is True
    assert row["ban_reason"] == "impersonation"


@pytest.mark.asyncio
async def test_user_detail_by_id_and_uid(async_client, db_session: AsyncSession):
    owner = await create_user(db_session)
    target = await create_user(db_session, username="kilo")
    assert target.id is not None
    await _add_links(db_session, target.id, 5, 1)
    headers = auth_headers(owner)

    by_id = await async_client.get(f"/api/v1/admin/users/{target.id}", headers=headers)
    by_uid = await async_client.get(f"/api/v1/admin/users/uid/{target.uid}", headers=headers)
    missing = await async_client.get("/api/v1/admin/users/uid/999", headers=headers)

    assert by_id.status_code == 200
    assert by_id.json()["user"]["username"] == "kilo"
    assert by_id.json()["user"]["is_banned"] is False
    assert by_id.json()["user"]["profile"]["view_count"] == 0
    assert [link["title"] for link in by_id.json()["links"]] == ["Link 0", "Link 1"]
    assert by_uid.status_code == 200
    assert by_uid.json()["user"]["id"] == target.id
    assert by_uid.json()["badges"] == []
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_activity_feed(async_client, db_session: AsyncSession):
    owner = await create_user(db_session, username="lima")
    target = await create_user(db_session, username="mike")
    assert target.id is not None
    await _add_links(db_session, target.id, 0)
    headers = auth_headers(owner)
    await async_client.post(
        "/api/v1/admin/ban", json={"user_id": target.id, "reason": "spam"}, headers=headers
    )

    response = await async_client.get("/api/v1/admin/activity", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert {user["username"] for user in body["recent_users"]} == {"lima", "mike"}
    assert body["recent_links"][0]["username"] == "mike"
    assert body["recent_badges"] == []
    assert body["recent_bans"] == [
        {
            "banned_at": body["recent_bans"][0]["banned_at"],
            "reason": "spam",
            "username": "mike",
            "uid": target.uid,
            "banned_by": "lima",
        }
    ]


@pytest.mark.asyncio
async def test_audit_log_listing_is_newest_first(async_client, db_session: AsyncSession):
    owner = await create_user(db_session, username="november")
    target = await create_user(db_session, username="oscar")
    assert owner.id is not None

    for action in (AuditAction.BAN_USER, AuditAction.UNBAN_USER, AuditAction.STRIP_EFFECTS):
        await record_action(
            db_session,
            actor_id=owner.id,
            action=action,
            target_user_id=target.id,
            details={"note": action.value.lower()},
        )

    response = await async_client.get(
        "/api/v1/admin/audit-logs", params={"limit": 2}, headers=auth_headers(owner)
    )

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
    assert [log["action"] for log in body["logs"]] == ["STRIP_EFFECTS", "UNBAN_USER"]
    assert body["logs"][0]["admin_username"] == "november"
    assert body["logs"][0]["target_username"] == "oscar"
    assert body["logs"][0]["target_uid"] == target.uid
    assert body["logs"][0]["details"] == {"note": "strip_effects"}
