"""Maintenance script to delete expired one-time credentials and sessions.

Usage:
    python scripts/prune_expired_credentials.py

Environment overrides:
    CREDENTIAL_PRUNE_GRACE_MINUTES=0
"""

from __future__ import annotations

import asyncio
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from time import perf_counter

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from db.session import AsyncSessionMaker  # noqa: E402
from services.auth import prune_expired_one_time_codes, prune_expired_sessions  # noqa: E402

GRACE_MINUTES_ENV = "CREDENTIAL_PRUNE_GRACE_MINUTES"
DEFAULT_GRACE_MINUTES = 0


@dataclass(frozen=True)
class PruneSummary:
    verification_codes: int
    reset_tokens: int
    sessions: int

    @property
    def total(self) -> int:
        return self.verification_codes + self.reset_tokens + self.sessions


def _parse_non_negative_int(raw_value: str | None, *, default: int, label: str) -> int:
    if raw_value is None or raw_value.strip() == "":
        return default
    try:
        parsed = int(raw_value)
    except ValueError as exc:
        raise ValueError(f"{label} must be an integer") from exc
    if parsed < 0:
        raise ValueError(f"{label} must be non-negative")
    return parsed


async def prune_expired_credentials(
    session: AsyncSession,
    *,
    cutoff: datetime,
) -> PruneSummary:
    codes, tokens = await prune_expired_one_time_codes(session, now=cutoff)
    sessions = await prune_expired_sessions(session, now=cutoff)
    await session.commit()
    return PruneSummary(verification_codes=codes, reset_tokens=tokens, sessions=sessions)


async def run(
    *,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    now: datetime | None = None,
) -> PruneSummary:
    grace_minutes = _parse_non_negative_int(
        os.getenv(GRACE_MINUTES_ENV),
        default=DEFAULT_GRACE_MINUTES,
        label=GRACE_MINUTES_ENV,
    )
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(minutes=grace_minutes)
    factory = session_maker or AsyncSessionMaker

    started_at = perf_counter()
    async with factory() as session:
        summary = await prune_expired_credentials(session, cutoff=cutoff)

    elapsed_ms = int((perf_counter() - started_at) * 1000)
    print(
        "Expired credential prune complete: "
        f"verification_codes={summary.verification_codes}, "
        f"reset_tokens={summary.reset_tokens}, sessions={summary.sessions}, "
        f"elapsed_ms={elapsed_ms}"
    )
    return summary


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
