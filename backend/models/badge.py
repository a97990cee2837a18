"""Badge definitions and their assignment to users."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlmodel import Field, SQLModel

DEFAULT_BADGE_COLOR = "#059669"


class Badge(SQLModel, table=True):
    """Named, coloured badge that admins can hand out."""

    __tablename__ = "badges"

    id: int | None = Field(
        default=None, sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )
    name: str = Field(sa_column=Column(String(50), unique=True, nullable=False))
    description: str = Field(
        default="",
        sa_column=Column(String(255), nullable=False, server_default=text("''")),
    )
    icon: str = Field(sa_column=Column(String(100), nullable=False))
    color: str = Field(
        default=DEFAULT_BADGE_COLOR,
        sa_column=Column(String(20), nullable=False),
    )
    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )
    )


class UserBadge(SQLModel, table=True):
    """Assignment of a badge to a user."""

    __tablename__ = "user_badges"
    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="uq_user_badges_user_badge"),
    )

    id: int | None = Field(
        default=None, sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )
    user_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    badge_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("badges.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    assigned_by: int | None = Field(
        default=None,
        sa_column=Column(
            Integer,
            ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    display_order: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default=text("0")),
    )
    is_monochrome: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("false")),
    )
    assigned_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )
    )
