"""Classification of driver integrity errors."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

POSTGRES_UNIQUE_VIOLATION = "23505"
SQLITE_UNIQUE_ERRORS = frozenset({"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"})
_UNIQUE_MESSAGE_MARKERS = ("duplicate key", "unique constraint")


def is_unique_violation(error: IntegrityError) -> bool:
    """True when ``error`` came from a unique index or primary key.

    asyncpg exposes the SQLSTATE, sqlite3 (3.11+) the extended error name;
    anything else falls back to the driver message.
    """
    original = getattr(error, "orig", None)
    sqlstate = getattr(original, "sqlstate", None) or getattr(original, "pgcode", None)
    if sqlstate is not None:
        return sqlstate == POSTGRES_UNIQUE_VIOLATION
    if getattr(original, "sqlite_errorname", None) in SQLITE_UNIQUE_ERRORS:
        return True
    message = str(original or error).lower()
    return any(marker in message for marker in _UNIQUE_MESSAGE_MARKERS)


__all__ = ["is_unique_violation"]
