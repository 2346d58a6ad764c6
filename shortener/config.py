"""Configuration management for the URL shortener service.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram — get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache │
    │ (lru_cache) │
    └──────┬──────┘
    HIT?   │
    ┌──────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Import**::
    from shortener.config import get_settings

**Step 2 — Get settings**::
    settings = get_settings()
    db_url = settings.DATABASE_URL

**Step 3 — Hand them to the container**::
    container = ServiceContainer.from_settings(settings)

Key Behaviours
===============
- Settings are cached after first access.
- Environment variables (and an optional ``.env`` file) override defaults.
- ``SHORT_CODE_LENGTH`` of 0 means "let the generator pick its default".
- ``AUTH0_AUDIENCE`` is the audience of access tokens presented to this API;
  the management API audience is derived from the domain when not set.

Classes:
    Settings:  Pydantic model for all configuration values.
"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "shortener"
    APP_ENV: str = "development"
    BASE_URL: str = "http://localhost:8080"
    LOG_LEVEL: str | None = None

    # PostgreSQL
    DATABASE_URL: str = "postgresql+asyncpg://shortener:shortener@db:5432/shortener"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Redis / Valkey
    REDIS_URL: str = "redis://redis:6379/0"
    CACHE_TTL_SECONDS: int = 24 * 60 * 60
    CACHE_SOCKET_TIMEOUT_SECONDS: float = 1.0

    # Short code generation
    SHORT_CODE_LENGTH: int = 0
    SHORT_CODE_MAX_ATTEMPTS: int = 3

    # Auth0 management API
    AUTH0_DOMAIN: str = ""
    AUTH0_CLIENT_ID: str = ""
    AUTH0_CLIENT_SECRET: str = ""
    AUTH0_AUDIENCE: str = ""
    AUTH0_MANAGEMENT_AUDIENCE: str | None = None
    AUTH0_JWKS_CACHE_SECONDS: int = 300
    AUTH0_CLOCK_SKEW_SECONDS: int = 60
    IDENTITY_PROVIDER_TIMEOUT_SECONDS: float = 5.0

    CORS_ALLOW_ORIGINS: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    @property
    def log_level(self) -> str:
        if self.LOG_LEVEL:
            return self.LOG_LEVEL.upper()
        return "DEBUG" if self.APP_ENV == "development" else "INFO"

    @property
    def auth0_management_audience(self) -> str:
        return self.AUTH0_MANAGEMENT_AUDIENCE or f"https://{self.AUTH0_DOMAIN}/api/v2/"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
