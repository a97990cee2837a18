"""Ban record model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlmodel import Field, SQLModel

DEFAULT_BAN_REASON = "No reason provided"


class BannedUser(SQLModel, table=True):
    """Presence of a row means the user is banned."""

    __tablename__ = "banned_users"

    id: int | None = Field(
        default=None, sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )
    user_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("users.id", ondelete="CASCADE"),
            unique=True,
            nullable=False,
        )
    )
    reason: str = Field(
        default=DEFAULT_BAN_REASON,
        sa_column=Column(String(500), nullable=False),
    )
    banned_by: int | None = Field(
        default=None,
        sa_column=Column(
            Integer,
            ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    banned_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )
    )
