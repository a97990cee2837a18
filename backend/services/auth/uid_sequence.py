"""Allocation of sequential public user identifiers."""

from __future__ import annotations

from typing import Any, cast

from sqlalchemy import insert, text
from sqlalchemy.ext.asyncio import AsyncSession

from models import UidAllocation

UID_SEQUENCE_NAME = "user_uid_seq"

_CREATE_SEQUENCE_SQL = text(f"CREATE SEQUENCE IF NOT EXISTS {UID_SEQUENCE_NAME} START 1")
_NEXT_VALUE_SQL = text(f"SELECT nextval('{UID_SEQUENCE_NAME}')")


async def _next_postgres_uid(session: AsyncSession) -> int:
    # Creating the sequence is idempotent, so a missing sequence is repaired
    # on first use instead of failing the registration.
    await session.execute(_CREATE_SEQUENCE_SQL)
    result = await session.execute(_NEXT_VALUE_SQL)
    return int(result.scalar_one())


async def _next_table_uid(session: AsyncSession) -> int:
    result = await session.execute(insert(cast(Any, UidAllocation).__table__))
    primary_key = result.inserted_primary_key
    if primary_key is None or primary_key[0] is None:  # pragma: no cover - driver contract
        raise RuntimeError("UID allocation did not return a value")
    return int(primary_key[0])


async def next_uid(session: AsyncSession) -> int:
    """Reserve the next UID using the database's atomic counter primitive.

    PostgreSQL uses a real sequence; other dialects use the row id of an
    insert-only table.
    """
    bind = session.get_bind()
    if bind.dialect.name == "postgresql":
        return await _next_postgres_uid(session)
    return await _next_table_uid(session)


__all__ = ["UID_SEQUENCE_NAME", "next_uid"]
