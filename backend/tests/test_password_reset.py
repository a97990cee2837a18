"""Tests for forgot-password and reset-password."""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, cast
from urllib.parse import unquote

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from models import PasswordResetToken
from services.auth import (
    consume_password_reset_token,
    hash_reset_token,
    issue_password_reset_token,
)
from tests.factories import DEFAULT_PASSWORD, create_user

_TOKEN_PATTERN = re.compile(r"reset-password\?token=([^\"&]+)")


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _token_from_email(html: str) -> str:
    match = _TOKEN_PATTERN.search(html)
    assert match is not None
    return unquote(match.group(1))


async def _tokens_for(session: AsyncSession, user_id: int) -> list[PasswordResetToken]:
    result = await session.execute(
        select(PasswordResetToken).where(_eq(PasswordResetToken.user_id, user_id))
    )
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_forgot_password_response_does_not_reveal_account(
    async_client, db_session: AsyncSession, email_outbox
):
    await create_user(db_session, email="sam@example.com")

    known = await async_client.post(
        "/api/v1/auth/forgot-password", json={"email": "sam@example.com"}
    )
    unknown = await async_client.post(
        "/api/v1/auth/forgot-password", json={"email": "nobody@example.com"}
    )

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert len(email_outbox.sent_to("sam@example.com")) == 1
    assert email_outbox.sent_to("nobody@example.com") == []


@pytest.mark.asyncio
async def test_only_token_hash_is_stored(async_client, db_session: AsyncSession, email_outbox):
    user = await create_user(db_session, email="tess@example.com")
    assert user.id is not None

    await async_client.post("/api/v1/auth/forgot-password", json={"email": "tess@example.com"})
    raw_token = _token_from_email(email_outbox.sent_to("tess@example.com")[0].html)

    stored = await _tokens_for(db_session, user.id)
    assert len(stored) == 1
    assert stored[0].token_hash == hash_reset_token(raw_token)
    assert stored[0].token_hash != raw_token
    assert len(raw_token) == 64


@pytest.mark.asyncio
async def test_new_request_replaces_previous_token(db_session: AsyncSession):
    user = await create_user(db_session)
    assert user.id is not None

    first = await issue_password_reset_token(db_session, user.id)
    second = await issue_password_reset_token(db_session, user.id)
    await db_session.commit()

    stored = await _tokens_for(db_session, user.id)
    assert [token.token_hash for token in stored] == [hash_reset_token(second)]
    assert await consume_password_reset_token(db_session, first) is None


@pytest.mark.asyncio
async def test_reset_password_changes_password_and_consumes_token(
    async_client, db_session: AsyncSession, email_outbox
):
    await create_user(db_session, username="uma", email="uma@example.com")
    await async_client.post("/api/v1/auth/forgot-password", json={"email": "uma@example.com"})
    raw_token = _token_from_email(email_outbox.sent_to("uma@example.com")[0].html)

    reset = await async_client.post(
        "/api/v1/auth/reset-password", json={"token": raw_token, "password": "brand-new-pass"}
    )
    assert reset.status_code == 200

    old_login = await async_client.post(
        "/api/v1/auth/login", json={"username": "uma", "password": DEFAULT_PASSWORD}
    )
    new_login = await async_client.post(
        "/api/v1/auth/login", json={"username": "uma", "password": "brand-new-pass"}
    )
    assert old_login.status_code == 401
    assert new_login.status_code == 200

    replay = await async_client.post(
        "/api/v1/auth/reset-password", json={"token": raw_token, "password": "another-pass"}
    )
    assert replay.status_code == 400
    assert replay.json()["detail"] == "Invalid or expired reset token"


@pytest.mark.asyncio
async def test_reset_password_rejects_short_password(async_client, db_session: AsyncSession):
    user = await create_user(db_session)
    assert user.id is not None
    raw_token = await issue_password_reset_token(db_session, user.id)
    await db_session.commit()

    response = await async_client.post(
        "/api/v1/auth/reset-password", json={"token": raw_token, "password": "12345"}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Password must be at least 6 characters"
    assert len(await _tokens_for(db_session, user.id)) == 1


@pytest.mark.asyncio
async def test_expired_token_is_rejected(db_session: AsyncSession):
    user = await create_user(db_session)
    assert user.id is not None
    issued_at = datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)
    raw_token = await issue_password_reset_token(db_session, user.id, now=issued_at)
    await db_session.commit()

    expired = await consume_password_reset_token(
        db_session, raw_token, now=issued_at + timedelta(hours=1)
    )
    assert expired is None

    live = await consume_password_reset_token(
        db_session, raw_token, now=issued_at + timedelta(minutes=59)
    )
    assert live == user.id


@pytest.mark.asyncio
async def test_unknown_token_is_rejected(async_client):
    response = await async_client.post(
        "/api/v1/auth/reset-password", json={"token": "f" * 64, "password": "whatever1"}
    )
    assert response.status_code == 400
