"""
Page-number pagination for list endpoints.
"""
from math import ceil
from typing import Generic, List, Sequence, TypeVar

from fastapi import Query
from pydantic import BaseModel

T = TypeVar("T")

MAX_PAGE_SIZE = 100


class PaginationParams:
    """Query parameters ``page`` (1-based) and ``limit``, used as a dependency."""

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number"),
        limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE, description="Items per page"),
    ):
        self.page = page
        self.limit = limit

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class PageInfo(BaseModel):
    current_page: int
    total_pages: int
    page_size: int
    total_items: int
    has_previous: bool
    has_next: bool


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of items plus where it sits in the full result."""
    items: List[T]
    page_info: PageInfo


def paginate_response(items: Sequence[T], total: int, pagination: PaginationParams) -> PaginatedResponse[T]:
    """
    Wrap one page of results.

    Args:
        items: Items of the requested page
        total: Item count across all pages
        pagination: Requested page

    Returns:
        PaginatedResponse: Items with page info
    """
    total_pages = ceil(total / pagination.limit) if total else 0
    return PaginatedResponse(
        items=list(items),
        page_info=PageInfo(
            current_page=pagination.page,
            total_pages=total_pages,
            page_size=pagination.limit,
            total_items=total,
            has_previous=pagination.page > 1,
            has_next=pagination.page < total_pages,
        ),
    )
