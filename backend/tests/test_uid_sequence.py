"""UID allocation stays unique and gap-tolerant under concurrency."""

import asyncio

import pytest
from sqlalchemy import select

from models import User
from services.auth import next_uid
from tests.factories import build_registration


@pytest.mark.asyncio
async def test_next_uid_is_strictly_increasing(session_maker):
    async with session_maker() as session:
        first = await next_uid(session)
        second = await next_uid(session)
        await session.commit()

    assert second == first + 1


@pytest.mark.asyncio
async def test_concurrent_registrations_get_distinct_uids(async_client, session_maker):
    payloads = [build_registration() for _ in range(6)]

    responses = await asyncio.gather(
        *(async_client.post("/api/v1/auth/register", json=payload) for payload in payloads)
    )

    assert [response.status_code for response in responses] == [201] * 6
    uids = [response.json()["user"]["uid"] for response in responses]
    assert len(set(uids)) == 6

    async with session_maker() as session:
        result = await session.execute(select(User))
        users = result.scalars().all()
    owners = [user for user in users if user.uid == 1]
    assert len(owners) == 1
    assert owners[0].role == "owner"
    assert all(user.role == "user" for user in users if user.uid != 1)
