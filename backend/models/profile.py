"""Public profile model bound 1:1 to a user."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func, text
from sqlmodel import Field, SQLModel

NO_EFFECT = "none"


class Profile(SQLModel, table=True):
    """Customisable public page for a user."""

    __tablename__ = "profiles"

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
    display_name: str | None = Field(
        default=None, sa_column=Column(String(50), nullable=True)
    )
    bio: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    location: str | None = Field(
        default=None, sa_column=Column(String(100), nullable=True)
    )
    background_image: str | None = Field(
        default=None, sa_column=Column(String(500), nullable=True)
    )
    background_video: str | None = Field(
        default=None, sa_column=Column(String(500), nullable=True)
    )
    background_audio: str | None = Field(
        default=None, sa_column=Column(String(500), nullable=True)
    )
    custom_cursor: str | None = Field(
        default=None, sa_column=Column(String(500), nullable=True)
    )
    background_effect: str = Field(
        default=NO_EFFECT,
        sa_column=Column(String(50), nullable=False, server_default=text("'none'")),
    )
    username_effect: str = Field(
        default=NO_EFFECT,
        sa_column=Column(String(50), nullable=False, server_default=text("'none'")),
    )
    view_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default=text("0")),
    )
    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
    )
    updated_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True),
            server_default=func.now(),
            onupdate=func.now(),
            nullable=False,
        ),
    )
