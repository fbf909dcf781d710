"""
Pagination for list endpoints
"""
from typing import Generic, TypeVar
from pydantic import BaseModel, Field
from fastapi import Query

T = TypeVar('T')


class PaginationParams:
    """
    Query parameters shared by list endpoints

    Usage:
        @router.get("/bids")
        def list_bids(pagination: PaginationParams = Depends()):
            ...
    """
    def __init__(
        self,
        skip: int = Query(0, ge=0, description="Number of bids to skip"),
        limit: int = Query(50, ge=1, le=200, description="Page size (max 200)")
    ):
        self.skip = skip
        self.limit = limit


class Page(BaseModel, Generic[T]):
    items: list[T]
    total: int = Field(description="Total number of rows matching the query")
    skip: int
    limit: int
    has_more: bool


def paginate_query(query, skip: int = 0, limit: int = 50):
    """Return (rows for this page, total count)"""
    total = query.count()
    return query.offset(skip).limit(limit).all(), total


def page_of(items: list, total: int, skip: int, limit: int) -> dict:
    return {
        "items": items,
        "total": total,
        "skip": skip,
        "limit": limit,
        "has_more": skip + len(items) < total,
    }
