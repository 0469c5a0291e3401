"""Response envelopes shared by every resource router."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Pagination(BaseModel):
    """Cursor pagination (tickets) or offset pagination (directories)."""

    limit: int
    next_cursor: str | None = None
    offset: int | None = None
    total: int | None = None


class DataResponse(BaseModel, Generic[T]):
    """Single-object success body: {"data": ...}."""

    data: T


class PageResponse(BaseModel, Generic[T]):
    """List success body: {"data": [...], "pagination": {...}}."""

    data: list[T]
    pagination: Pagination


class ErrorResponse(BaseModel):
    """Error body rendered by the global exception handlers."""

    error: str | list | dict
