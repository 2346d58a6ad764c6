"""Database engine and session management for the URL shortener.

This module provides SQLAlchemy async engine setup, session factories and
database lifecycle operations using PostgreSQL as the backend.

Flow Diagram — Database Operations
=================================
::
    ┌──────────────┐
    │ Service      │
    │ container    │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ create_      │
    │ engine()     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ get_db()     │
    │ dependency   │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ Yield session│
    │ to handler   │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ Auto-close   │
    │ (finally)    │
    └──────────────┘

How to Use
===========
**Step 1 — Build the engine on startup**::
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    await init_db(engine)  # Creates tables

**Step 2 — Open a session per request**::
    async with session_factory() as session:
        repository = Repository(session)

**Step 3 — Cleanup on shutdown**::
    await close_db(engine)

Key Behaviours
===============
- Engines are created explicitly and owned by the service container.
- Connection pooling is configured for production workloads.
- Tables are created automatically on application startup.

Classes:
    Base:  SQLAlchemy declarative base for all models.

Functions:
    create_engine():  Build the async engine from settings.
    create_session_factory():  Session factory bound to an engine.
    init_db():  Creates all tables on startup.
    close_db():  Disposes the engine on shutdown.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shortener.config import Settings

__all__ = ["Base", "create_engine", "create_session_factory", "init_db", "close_db"]


class Base(DeclarativeBase):
    pass


def create_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(
        settings.DATABASE_URL,
        echo=False,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    # Import for the side effect of registering the tables on Base.metadata.
    from shortener import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    await engine.dispose()
