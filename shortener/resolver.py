"""Cache-aside resolution of short codes.

Flow Diagram — resolve()
========================
::
    ┌─────────────┐
    │ resolve(c)  │
    └──────┬──────┘
           ▼
    ┌─────────────┐  error → log, treat as miss
    │ Cache GET   │
    └──────┬──────┘
    HIT?   │
    ┌──────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌──────────┐  ┌─────────┐
│ Store    │  │ Return  │
│ SELECT   │  │ cached  │
└────┬─────┘  └─────────┘
     ▼
┌──────────┐  error → log only
│ Cache SET│
│ EX 24h   │
└────┬─────┘
     ▼
┌──────────┐
│ Return   │
└──────────┘

Key Behaviours
===============
- A cache hit never touches the store.
- Cache failures never fail a request.
- A missing code is a terminal ``NotFound``; other store failures are
  ``InternalError``.
- No locks are taken: a read racing a delete may see the old mapping or
  ``NotFound``.
"""

import logging

from prometheus_client import Counter

from shortener.cache import DEFAULT_CACHE_TTL_SECONDS, URLCache
from shortener.enums import CacheStatus
from shortener.errors import InternalError, NotFound, ValidationError
from shortener.repository import Repository

__all__ = ["UrlResolver"]

URL_CACHE_LOOKUPS_TOTAL = Counter(
    "shortener_url_cache_lookups_total",
    "Cache lookups performed while resolving short codes",
    ["result"],
)


class UrlResolver:
    def __init__(
        self,
        store: Repository,
        cache: URLCache,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._ttl_seconds = ttl_seconds
        self._logger = logger or logging.getLogger("shortener")

    async def resolve(self, code: str) -> str:
        if not code:
            raise ValidationError(errors={"code": "Short code is required"})

        long_url = await self._lookup_cache(code)
        if long_url:
            return long_url

        try:
            long_url = await self._store.get_long_url(code)
        except Exception as exc:
            if self._store.is_not_found_error(exc):
                self._logger.info(f"Long url not found for {code}", extra={"short_code": code})
                raise NotFound("Short URL not found") from exc
            self._logger.error(f"Failed to get long url for {code}: {exc}", exc_info=exc, extra={"short_code": code})
            raise InternalError() from exc

        await self._populate_cache(code, long_url)
        return long_url

    async def _lookup_cache(self, code: str) -> str | None:
        try:
            long_url = await self._cache.get_long_url(code)
        except Exception as exc:
            URL_CACHE_LOOKUPS_TOTAL.labels(result=CacheStatus.ERROR).inc()
            self._logger.warning(f"Failed to get long url from cache: {exc}", extra={"short_code": code})
            return None

        URL_CACHE_LOOKUPS_TOTAL.labels(result=CacheStatus.HIT if long_url else CacheStatus.MISS).inc()
        return long_url

    async def _populate_cache(self, code: str, long_url: str) -> None:
        try:
            await self._cache.set_long_url(code, long_url, ttl_seconds=self._ttl_seconds)
        except Exception as exc:
            self._logger.warning(
                f"Failed to cache long url: {exc}",
                extra={"short_code": code, "key": URLCache.key_for(code)},
            )
