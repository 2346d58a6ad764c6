"""Pydantic schemas for request/response validation in the URL shortener.

This module defines Pydantic models for API input parsing and output
serialization. Field-level rules for URLs and short codes live in
``shortener.validation`` so that the core services apply them in the right
order (a custom code from an anonymous caller is rejected before its format
is checked).

Schema Hierarchy
=================
::
    URLCreate (Input)
    ├─ url: str
    └─ short_code: str | None

    URLResponse (Output)
    ├─ code: str
    ├─ long_url: str
    ├─ short_url: str (computed from BASE_URL)
    ├─ is_custom: bool
    ├─ user_id: str | None
    └─ created_at: datetime

    PaginatedURLs / PaginatedUserBlocks (Output)
    ├─ items: list[...]
    └─ pagination: Pagination

    BlockUserRequest (Input)
    └─ reason: str | None (1-255 characters)

    UserBlockResponse (Output)
    └─ one row of ``user_blocks``

How to Use
===========
**Step 1 — Input parsing**::
    @router.post("/api/urls")
    async def create_url(payload: URLCreate): ...

**Step 2 — Response serialization**::
    url = await service.create_short_url(payload.url, payload.short_code, identity.user_id)
    return URLResponse.from_model(url, settings.BASE_URL)

**Step 3 — Pagination**::
    urls, total = await service.list_urls(params.limit, params.offset)
    return PaginatedURLs(
        items=[URLResponse.from_model(url, settings.BASE_URL) for url in urls],
        pagination=Pagination.calculate(total, params.page, params.page_size),
    )

Key Behaviours
===============
- Pages are 1-based; ``page`` is capped at 10000 and ``page_size`` at 100.
- An empty result still reports the requested page and page size.
- All datetime fields are timezone-aware.
- Models are configured for ORM attribute mapping.
"""

import datetime

from pydantic import BaseModel, Field

from shortener.enums import HealthStatus
from shortener.models import URL

__all__ = [
    "URLCreate",
    "URLResponse",
    "LongURLResponse",
    "PaginationParams",
    "Pagination",
    "PaginatedURLs",
    "BlockUserRequest",
    "UserBlockResponse",
    "PaginatedUserBlocks",
    "DeleteUserURLsResponse",
    "ErrorResponse",
    "HealthResponse",
]

MAX_PAGE = 10000
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20


class URLCreate(BaseModel):
    url: str
    short_code: str | None = None


class URLResponse(BaseModel):
    code: str
    long_url: str
    short_url: str
    is_custom: bool
    user_id: str | None = None
    created_at: datetime.datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_model(cls, url: URL, base_url: str) -> "URLResponse":
        return cls(
            code=url.code,
            long_url=url.long_url,
            short_url=f"{base_url.rstrip('/')}/{url.code}",
            is_custom=url.is_custom,
            user_id=url.user_id,
            created_at=url.created_at,
        )


class LongURLResponse(BaseModel):
    long_url: str


class PaginationParams(BaseModel):
    page: int = Field(1, ge=1, le=MAX_PAGE)
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)

    @property
    def limit(self) -> int:
        return self.page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class Pagination(BaseModel):
    page: int
    page_size: int
    total_items: int = 0
    total_pages: int = 0
    has_next: bool = False
    has_previous: bool = False

    @classmethod
    def calculate(cls, total_items: int, page: int, page_size: int) -> "Pagination":
        if total_items == 0:
            return cls(page=page, page_size=page_size)
        return cls(
            page=page,
            page_size=page_size,
            total_items=total_items,
            total_pages=(total_items + page_size - 1) // page_size,
            has_next=page * page_size < total_items,
            has_previous=page > 1,
        )


class PaginatedURLs(BaseModel):
    items: list[URLResponse]
    pagination: Pagination


class BlockUserRequest(BaseModel):
    reason: str | None = Field(None, min_length=1, max_length=255)


class UserBlockResponse(BaseModel):
    id: int
    user_id: str
    user_email: str | None = None
    blocked_by: str
    blocked_at: datetime.datetime
    unblocked_by: str | None = None
    unblocked_at: datetime.datetime | None = None
    reason: str | None = None

    model_config = {"from_attributes": True}


class PaginatedUserBlocks(BaseModel):
    items: list[UserBlockResponse]
    pagination: Pagination


class DeleteUserURLsResponse(BaseModel):
    deleted: int


class ErrorResponse(BaseModel):
    message: str
    errors: dict[str, str] | None = None


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus
