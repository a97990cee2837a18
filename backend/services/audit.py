"""Best-effort audit trail for privileged actions.

Entries are written after the action they describe has committed, in their
own transaction. A failed insert is logged and swallowed so that the primary
action is never undone or reported as failed because of the audit log.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, cast

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from models import AuditLogEntry, User

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    OWNER_ACCESS = "OWNER_ACCESS"
    GRANT_ADMIN = "GRANT_ADMIN"
    REVOKE_ADMIN = "REVOKE_ADMIN"
    BAN_USER = "BAN_USER"
    UNBAN_USER = "UNBAN_USER"
    DELETE_USER = "DELETE_USER"
    UPDATE_USER_STATUS = "UPDATE_USER_STATUS"
    CREATE_BADGE = "CREATE_BADGE"
    UPDATE_BADGE = "UPDATE_BADGE"
    DELETE_BADGE = "DELETE_BADGE"
    ASSIGN_BADGE = "ASSIGN_BADGE"
    REMOVE_BADGE = "REMOVE_BADGE"
    SEND_EMAIL = "SEND_EMAIL"
    SEND_BULK_EMAIL = "SEND_BULK_EMAIL"
    STRIP_EFFECTS = "STRIP_EFFECTS"


@dataclass(frozen=True)
class AuditLogRow:
    id: int
    admin_id: int | None
    admin_username: str | None
    action: str
    target_user_id: int | None
    target_username: str | None
    target_uid: int | None
    details: dict[str, Any]
    created_at: datetime


async def _insert_entry(session: AsyncSession, entry: AuditLogEntry) -> None:
    session.add(entry)
    await session.commit()


async def record_action(
    session: AsyncSession,
    *,
    actor_id: int | None,
    action: AuditAction | str,
    target_user_id: int | None = None,
    details: Mapping[str, Any] | None = None,
) -> bool:
    """Append one audit entry; returns False instead of raising on failure.

    The entry is written through a separate session on the same engine so a
    failure never expires or rolls back objects the caller still holds.
    """
    action_tag = action.value if isinstance(action, AuditAction) else action
    entry = AuditLogEntry(
        admin_id=actor_id,
        action=action_tag,
        target_user_id=target_user_id,
        details=dict(details or {}),
    )
    async with AsyncSession(session.bind, expire_on_commit=False) as audit_session:
        try:
            await _insert_entry(audit_session, entry)
        except Exception:
            await audit_session.rollback()
            logger.exception(
                "Audit log write failed for %s by %s on %s",
                action_tag,
                actor_id,
                target_user_id,
            )
            return False
    return True


async def count_audit_entries(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(AuditLogEntry))
    return int(result.scalar_one())


async def list_audit_entries(
    session: AsyncSession,
    *,
    offset: int,
    limit: int,
) -> list[AuditLogRow]:
    """Return entries newest first with actor and target names resolved."""
    admin_user = aliased(User)
    target_user = aliased(User)
    created_at_column = cast(Any, AuditLogEntry.created_at)
    id_column = cast(Any, AuditLogEntry.id)

    result = await session.execute(
        select(
            AuditLogEntry,
            cast(Any, admin_user.username).label("admin_username"),
            cast(Any, target_user.username).label("target_username"),
            cast(Any, target_user.uid).label("target_uid"),
        )
        .outerjoin(admin_user, cast(Any, admin_user.id) == AuditLogEntry.admin_id)
        .outerjoin(target_user, cast(Any, target_user.id) == AuditLogEntry.target_user_id)
        .order_by(created_at_column.desc(), id_column.desc())
        .offset(offset)
        .limit(limit)
    )
    rows: list[AuditLogRow] = []
    for entry, admin_username, target_username, target_uid in result.all():
        rows.append(
            AuditLogRow(
                id=cast(int, entry.id),
                admin_id=entry.admin_id,
                admin_username=admin_username,
                action=entry.action,
                target_user_id=entry.target_user_id,
                target_username=target_username,
                target_uid=target_uid,
                details=dict(entry.details or {}),
                created_at=entry.created_at,
            )
        )
    return rows


__all__ = [
    "AuditAction",
    "AuditLogRow",
    "count_audit_entries",
    "list_audit_entries",
    "record_action",
]
