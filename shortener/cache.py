"""Redis-backed cache of short code to long URL.

The cache is an expendable shadow of ``urls.long_url``: it may be stale or
empty at any time, and callers treat every failure here as a miss.

Flow Diagram — Cache Operations
===============================
::
    ┌──────────────┐
    │ UrlResolver  │
    └──────┬───────┘
           ▼
    ┌──────────────┐     miss     ┌──────────────┐
    │ GET          │ ───────────▶ │ Repository   │
    │ long_url:<c> │              └──────┬───────┘
    └──────┬───────┘                     ▼
       hit │                     ┌──────────────┐
           ▼                     │ SET ... EX   │
    ┌──────────────┐             │ 24h          │
    │ Return URL   │             └──────────────┘
    └──────────────┘

How to Use
===========
**Step 1 — Create the client on startup**::
    client = create_redis(settings)

**Step 2 — Wrap it**::
    cache = URLCache(client)
    await cache.set_long_url("abc12", "https://example.com")

**Step 3 — Cleanup on shutdown**::
    await client.aclose()

Key Behaviours
===============
- Keys are ``long_url:<code>``.
- Writes always reset the TTL (24 hours unless configured otherwise).
- Deleting a missing key returns 0, never an error.

Functions:
    create_redis():  Build the asyncio Redis client from settings.

Classes:
    URLCache:  Typed get/set/delete helpers over the client.
"""

import redis.asyncio as redis

from shortener.config import Settings

__all__ = ["DEFAULT_CACHE_TTL_SECONDS", "URLCache", "create_redis"]

DEFAULT_CACHE_TTL_SECONDS = 24 * 60 * 60


def create_redis(settings: Settings) -> redis.Redis:
    return redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.CACHE_SOCKET_TIMEOUT_SECONDS,
        socket_connect_timeout=settings.CACHE_SOCKET_TIMEOUT_SECONDS,
    )


class URLCache:
    def __init__(self, client: redis.Redis, ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS) -> None:
        self._client = client
        self._ttl_seconds = ttl_seconds

    @staticmethod
    def key_for(code: str) -> str:
        return f"long_url:{code}"

    async def get_long_url(self, code: str) -> str | None:
        value = await self._client.get(self.key_for(code))
        return value or None

    async def set_long_url(self, code: str, long_url: str, ttl_seconds: int | None = None) -> str:
        key = self.key_for(code)
        await self._client.set(key, long_url, ex=ttl_seconds or self._ttl_seconds)
        return key

    async def delete_long_url(self, code: str) -> int:
        return await self._client.delete(self.key_for(code))

    async def delete_long_urls(self, codes: list[str]) -> int:
        if not codes:
            return 0
        return await self._client.delete(*(self.key_for(code) for code in codes))

    async def ping(self) -> bool:
        return await self._client.ping()
