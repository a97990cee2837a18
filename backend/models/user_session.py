"""Server-tracked login session model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String
from sqlmodel import Field, SQLModel


class UserSession(SQLModel, table=True):
    """Record of an issued session token.

    Bearer authentication never reads this table; rows exist so logout and
    moderation can clear a user's tracked sessions.
    """

    __tablename__ = "sessions"
    __table_args__ = (
        Index("ix_sessions_user_issued_at", "user_id", "issued_at"),
    )

    id: int | None = Field(
        default=None, sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )
    user_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    token_hash: str = Field(
        sa_column=Column(String(64), nullable=False, unique=True)
    )
    issued_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
