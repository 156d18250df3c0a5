"""Pydantic schemas shared across modules."""

from datetime import datetime
from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, Field

from .constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT

ItemT = TypeVar("ItemT")


class TimestampSchema(BaseModel):
    """Creation and last-update timestamps."""

    created_at: datetime
    updated_at: Optional[datetime] = None


class PageParams(BaseModel):
    """Page-based pagination and sorting for list endpoints."""

    page: int = Field(default=1, ge=1, description="Page number (1-indexed)")
    limit: int = Field(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT, description="Items per page")
    sort_by: str = Field(default="created_at", description="Column to sort by")
    sort_order: Literal["asc", "desc"] = Field(default="desc", description="Sort direction")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Page(BaseModel, Generic[ItemT]):
    """One page of a listing."""

    items: List[ItemT]
    total: int
    page: int
    limit: int
    has_more: bool
