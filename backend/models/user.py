"""User domain model."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func, text
from sqlmodel import Field, SQLModel

OWNER_UID = 1


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    OWNER = "owner"


class User(SQLModel, table=True):
    """Registered account.

    Admin status is derived from ``role`` (see ``services.authorization``)
    and is never stored.
    """

    __tablename__ = "users"

    id: int | None = Field(
        default=None, sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )
    username: str = Field(
        sa_column=Column(String(50), unique=True, nullable=False, index=True)
    )
    email: str = Field(
        sa_column=Column(String(255), unique=True, nullable=False, index=True)
    )
    # Accounts created from an external identity have no local password.
    password_hash: str | None = Field(
        default=None, sa_column=Column(String(255), nullable=True)
    )
    uid: int = Field(
        sa_column=Column(Integer, unique=True, nullable=False, index=True)
    )
    role: str = Field(
        default=UserRole.USER.value,
        sa_column=Column(
            String(16),
            nullable=False,
            server_default=text("'user'"),
        ),
    )
    is_verified: bool = Field(
        default=False,
        sa_column=Column(
            Boolean,
            nullable=False,
            server_default=text("false"),
        ),
    )
    discord_id: str | None = Field(
        default=None, sa_column=Column(String(32), unique=True, nullable=True)
    )
    discord_username: str | None = Field(
        default=None, sa_column=Column(String(100), nullable=True)
    )
    discord_avatar: str | None = Field(
        default=None, sa_column=Column(String(255), nullable=True)
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

