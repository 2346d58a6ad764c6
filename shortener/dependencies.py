"""Service container and FastAPI dependency functions.

Shared resources (engine, Redis client, identity provider, token verifier)
live in one ``ServiceContainer`` stored on ``app.state``. Everything that is
cheap and per-request (session, repository, services) is built by the
dependency functions below.

Dependency Graph
================
::
    request
      │
      ├─ get_container ─────────────▶ app.state.container
      │
      ├─ get_db ─────────────────────▶ AsyncSession (closed after response)
      │     └─ get_repository ───────▶ Repository
      │
      ├─ get_cache ──────────────────▶ URLCache
      │
      ├─ get_identity ───────────────▶ Identity | ANONYMOUS | 401
      │     ├─ require_authenticated ▶ Identity | 401
      │     └─ require_permission(p) ▶ Identity | 401 | 403
      │
      ├─ get_url_service ────────────▶ URLService(repository, cache)
      └─ get_block_saga ─────────────▶ UserBlockSaga(repository, provider)
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass

import redis.asyncio as redis
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from shortener.auth import ANONYMOUS, Auth0TokenVerifier, Identity, InvalidToken, TokenVerifier
from shortener.cache import URLCache, create_redis
from shortener.config import Settings, get_settings
from shortener.database import close_db, create_engine, create_session_factory
from shortener.errors import Forbidden, Unauthorized
from shortener.identity import Auth0Management, IdentityProvider
from shortener.repository import Repository
from shortener.saga import UserBlockSaga
from shortener.url_service import URLService

__all__ = [
    "ServiceContainer",
    "setup_logger",
    "get_container",
    "get_db",
    "get_repository",
    "get_cache",
    "get_identity",
    "require_authenticated",
    "require_permission",
    "get_url_service",
    "get_block_saga",
]

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

bearer_scheme = HTTPBearer(auto_error=False)


def setup_logger(settings: Settings) -> logging.Logger:
    """Configure the ``shortener`` logger once."""
    logger = logging.getLogger("shortener")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(settings.log_level)
    return logger


# ============================================================================
# SERVICE CONTAINER
# ============================================================================


@dataclass
class ServiceContainer:
    """Shared resources for the lifetime of the application."""

    settings: Settings
    logger: logging.Logger
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    redis: redis.Redis
    identity_provider: IdentityProvider
    token_verifier: TokenVerifier

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ServiceContainer":
        settings = settings or get_settings()
        engine = create_engine(settings)
        return cls(
            settings=settings,
            logger=setup_logger(settings),
            engine=engine,
            session_factory=create_session_factory(engine),
            redis=create_redis(settings),
            identity_provider=Auth0Management.from_settings(settings),
            token_verifier=Auth0TokenVerifier.from_settings(settings),
        )

    def url_cache(self) -> URLCache:
        return URLCache(self.redis, ttl_seconds=self.settings.CACHE_TTL_SECONDS)

    async def aclose(self) -> None:
        aclose_provider = getattr(self.identity_provider, "aclose", None)
        if aclose_provider is not None:
            await aclose_provider()
        await self.redis.aclose()
        await close_db(self.engine)


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


async def get_db(container: ServiceContainer = Depends(get_container)) -> AsyncIterator[AsyncSession]:
    async with container.session_factory() as session:
        yield session


def get_repository(session: AsyncSession = Depends(get_db)) -> Repository:
    return Repository(session)


def get_cache(container: ServiceContainer = Depends(get_container)) -> URLCache:
    return container.url_cache()


async def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    container: ServiceContainer = Depends(get_container),
) -> Identity:
    """Resolve the caller; no bearer token means anonymous."""
    if credentials is None or not credentials.credentials:
        return ANONYMOUS
    try:
        return await container.token_verifier.verify(credentials.credentials)
    except InvalidToken as exc:
        container.logger.info(f"Rejected access token: {exc}")
        raise Unauthorized("Invalid access token") from exc


async def require_authenticated(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_authenticated:
        raise Unauthorized()
    return identity


def require_permission(permission: str) -> Callable[..., Awaitable[Identity]]:
    async def dependency(identity: Identity = Depends(require_authenticated)) -> Identity:
        if not identity.has_permission(permission):
            raise Forbidden(f"Missing permission {permission}")
        return identity

    return dependency


def get_url_service(
    repository: Repository = Depends(get_repository),
    cache: URLCache = Depends(get_cache),
    container: ServiceContainer = Depends(get_container),
) -> URLService:
    return URLService(repository, cache, container.settings, logger=container.logger)


def get_block_saga(
    repository: Repository = Depends(get_repository),
    container: ServiceContainer = Depends(get_container),
) -> UserBlockSaga:
    return UserBlockSaga(repository, container.identity_provider, logger=container.logger)
