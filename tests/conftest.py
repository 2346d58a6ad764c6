"""Shared pytest fixtures: in-memory database, fake Redis, fake identity services."""

import logging
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shortener.auth import Identity, InvalidToken
from shortener.cache import URLCache
from shortener.config import Settings
from shortener.database import Base, create_session_factory
from shortener.dependencies import ServiceContainer
from shortener.enums import Permission
from shortener.identity import ProviderUser
from shortener.main import create_app
from shortener.repository import Repository

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

USER_TOKEN = "user-token"
OTHER_USER_TOKEN = "other-user-token"
ADMIN_TOKEN = "admin-token"

USER_ID = "auth0|user-1"
OTHER_USER_ID = "auth0|user-2"
ADMIN_ID = "auth0|admin"


class FakeRedis:
    """In-memory stand-in for the parts of ``redis.asyncio.Redis`` the cache uses."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise ConnectionError("redis unavailable")

    async def get(self, key: str) -> str | None:
        self._check()
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check()
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                self.ttls.pop(key, None)
                removed += 1
        return removed

    async def ping(self) -> bool:
        self._check()
        return True

    async def aclose(self) -> None:
        pass


class FakeIdentityProvider:
    """Records calls and fails on demand."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.emails: dict[str, str] = {}
        self.block_error: Exception | None = None
        self.unblock_error: Exception | None = None
        self.blocked: set[str] = set()

    async def block_user(self, user_id: str) -> ProviderUser:
        self.calls.append(("block", user_id))
        if self.block_error is not None:
            raise self.block_error
        self.blocked.add(user_id)
        return ProviderUser(user_id=user_id, email=self.emails.get(user_id))

    async def unblock_user(self, user_id: str) -> None:
        self.calls.append(("unblock", user_id))
        if self.unblock_error is not None:
            raise self.unblock_error
        self.blocked.discard(user_id)


class FakeTokenVerifier:
    def __init__(self, identities: dict[str, Identity]) -> None:
        self.identities = identities

    async def verify(self, token: str) -> Identity:
        try:
            return self.identities[token]
        except KeyError:
            raise InvalidToken("unknown token") from None


@pytest.fixture
def settings() -> Settings:
    return Settings(
        APP_ENV="test",
        BASE_URL="http://sho.rt",
        DATABASE_URL=TEST_DATABASE_URL,
        AUTH0_DOMAIN="tenant.example.com",
        AUTH0_AUDIENCE="https://api.sho.rt",
    )


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def repository(session: AsyncSession) -> Repository:
    return Repository(session)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def url_cache(fake_redis: FakeRedis) -> URLCache:
    return URLCache(fake_redis)


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def token_verifier() -> FakeTokenVerifier:
    return FakeTokenVerifier(
        {
            USER_TOKEN: Identity(
                user_id=USER_ID,
                permissions=frozenset({Permission.CREATE_URLS, Permission.GET_OWN_URLS, Permission.DELETE_OWN_URLS}),
            ),
            OTHER_USER_TOKEN: Identity(user_id=OTHER_USER_ID),
            ADMIN_TOKEN: Identity(
                user_id=ADMIN_ID,
                permissions=frozenset({Permission.DELETE_URLS, Permission.BLOCK_USERS}),
            ),
        }
    )


@pytest.fixture
def container(
    settings: Settings,
    engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession],
    fake_redis: FakeRedis,
    identity_provider: FakeIdentityProvider,
    token_verifier: FakeTokenVerifier,
) -> ServiceContainer:
    return ServiceContainer(
        settings=settings,
        logger=logging.getLogger("shortener"),
        engine=engine,
        session_factory=session_factory,
        redis=fake_redis,
        identity_provider=identity_provider,
        token_verifier=token_verifier,
    )


@pytest_asyncio.fixture
async def client(container: ServiceContainer) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(container)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
