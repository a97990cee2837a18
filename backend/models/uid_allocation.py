"""Insert-only UID counter for databases without native sequences."""

from __future__ import annotations

from sqlalchemy import Column, Integer
from sqlmodel import Field, SQLModel


class UidAllocation(SQLModel, table=True):
    """Each inserted row reserves its primary key as a public UID."""

    __tablename__ = "uid_allocations"

    uid: int | None = Field(
        default=None, sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )
