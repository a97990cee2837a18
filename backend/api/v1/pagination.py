"""Shared pagination constants and page metadata helpers."""

from math import ceil

from pydantic import BaseModel

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


def page_offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def pagination_meta(*, page: int, limit: int, total: int) -> PaginationMeta:
    return PaginationMeta(page=page, limit=limit, total=total, pages=ceil(total / limit))
