"""URL Shortener Service Layer

This module provides the service facade the HTTP layer talks to. It composes
the allocator, the resolver, the repository and the cache, and owns the
best-effort cache eviction that follows a delete.

Architecture Overview
=====================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                      URLService                             │
    │  ┌─────────────────┐  ┌─────────────────┐  ┌──────────────┐ │
    │  │  CodeAllocator  │  │   UrlResolver   │  │ Delete/List  │ │
    │  │                 │  │                 │  │              │ │
    │  │ • Custom codes  │  │ • Cache first   │  │ • Owner scope│ │
    │  │ • Generated     │  │ • Store on miss │  │ • Evict cache│ │
    │  │ • Bounded retry │  │ • Write-through │  │ • Pagination │ │
    │  └─────────────────┘  └─────────────────┘  └──────────────┘ │
    └─────────────────────────────────────────────────────────────┘
                │                    │                    │
                ▼                    ▼                    ▼
    ┌─────────────────┐  ┌─────────────────┐  ┌─────────────────┐
    │   PostgreSQL    │  │  Redis/Valkey   │  │   PostgreSQL    │
    │   (urls)        │  │  (long_url:*)   │  │   (urls)        │
    └─────────────────┘  └─────────────────┘  └─────────────────┘

Usage Examples
==============
```python
@router.post("/api/urls")
async def create_url(
    payload: URLCreate,
    identity: Identity = Depends(get_identity),
    service: URLService = Depends(get_url_service),
) -> URLResponse:
    url = await service.create_short_url(payload.url, payload.short_code, identity.user_id)
    return URLResponse.from_model(url, service.settings.BASE_URL)
```
"""

import logging

from shortener.allocator import CodeAllocator
from shortener.cache import URLCache
from shortener.config import Settings
from shortener.errors import InternalError
from shortener.models import URL
from shortener.repository import Repository
from shortener.resolver import UrlResolver

__all__ = ["URLService"]


class URLService:
    """Entry point for creating, resolving, listing and deleting short URLs.

    Example:
        >>> service = URLService(repository, cache, settings)
        >>> url = await service.create_short_url("https://example.com")
        >>> await service.resolve(url.code)
        'https://example.com'
    """

    def __init__(
        self,
        store: Repository,
        cache: URLCache,
        settings: Settings,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._settings = settings
        self._logger = logger or logging.getLogger("shortener")
        self._allocator = CodeAllocator(
            store,
            code_length=settings.SHORT_CODE_LENGTH,
            max_attempts=settings.SHORT_CODE_MAX_ATTEMPTS,
            logger=self._logger,
        )
        self._resolver = UrlResolver(
            store,
            cache,
            ttl_seconds=settings.CACHE_TTL_SECONDS,
            logger=self._logger,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    async def create_short_url(
        self,
        long_url: str,
        custom_code: str | None = None,
        owner_id: str | None = None,
    ) -> URL:
        return await self._allocator.allocate(long_url, custom_code, owner_id)

    async def resolve(self, code: str) -> str:
        return await self._resolver.resolve(code)

    async def delete_url(self, code: str, owner_id: str | None = None) -> int:
        """Delete one mapping, optionally scoped to its owner.

        Returns the number of deleted rows; zero is not an error. The cache
        entry is evicted best-effort and may outlive the row until it expires.
        """
        try:
            deleted = await self._store.delete_url(code, user_id=owner_id)
        except Exception as exc:
            self._logger.error(f"Failed to delete short url {code}: {exc}", exc_info=exc, extra={"short_code": code})
            raise InternalError() from exc

        if deleted:
            await self._evict([code])
        return deleted

    async def delete_user_urls(self, user_id: str) -> int:
        try:
            codes = await self._store.delete_user_urls(user_id)
        except Exception as exc:
            self._logger.error(f"Failed to delete urls of user {user_id}: {exc}", exc_info=exc, extra={"user_id": user_id})
            raise InternalError() from exc

        await self._evict(codes)
        self._logger.info(f"Deleted {len(codes)} urls of user {user_id}", extra={"user_id": user_id})
        return len(codes)

    async def list_urls(
        self,
        limit: int,
        offset: int,
        is_custom: bool | None = None,
        user_id: str | None = None,
    ) -> tuple[list[URL], int]:
        try:
            return await self._store.get_urls(limit=limit, offset=offset, is_custom=is_custom, user_id=user_id)
        except Exception as exc:
            self._logger.error(f"Failed to list urls: {exc}", exc_info=exc)
            raise InternalError() from exc

    async def _evict(self, codes: list[str]) -> None:
        if not codes:
            return
        try:
            if len(codes) == 1:
                await self._cache.delete_long_url(codes[0])
            else:
                await self._cache.delete_long_urls(codes)
        except Exception as exc:
            self._logger.warning(
                f"Failed to delete {len(codes)} long urls from cache: {exc}",
                extra={"short_codes": codes},
            )
