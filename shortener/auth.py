"""Authenticated identity of the caller.

The HTTP layer turns an optional bearer token into one ``Identity`` value with
an optional user id and a set of permissions. How the token is checked is up
to the ``TokenVerifier`` the service container holds; ``Auth0TokenVerifier``
is the production one.

Flow Diagram — Auth0TokenVerifier.verify()
==========================================
::
    ┌──────────────┐
    │ bearer token │
    └──────┬───────┘
           ▼
    ┌──────────────────────┐  unknown kid / JWKS down
    │ signing key from     │ ─────────────────────────▶ InvalidToken
    │ JWKS (cached, 5 min) │
    └──────┬───────────────┘
           ▼
    ┌──────────────────────┐  bad signature, expired,
    │ jwt.decode RS256     │  wrong issuer/audience
    │ iss, aud, exp ±60 s  │ ─────────────────────────▶ InvalidToken
    └──────┬───────────────┘
           ▼
    ┌──────────────────────┐
    │ Identity(sub,        │
    │   permissions)       │
    └──────────────────────┘

Key Behaviours
===============
- ``sub`` is the user id; the ``permissions`` claim carries RBAC permissions.
- A token without ``sub`` is rejected.
- JWKS fetches run in a worker thread so the event loop is never blocked.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol

import jwt

from shortener.config import Settings

__all__ = [
    "ANONYMOUS",
    "Auth0TokenVerifier",
    "Identity",
    "InvalidToken",
    "TokenVerifier",
]


class InvalidToken(Exception):
    """The bearer token was present but could not be verified."""


@dataclass(frozen=True)
class Identity:
    user_id: str | None = None
    permissions: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


ANONYMOUS = Identity()


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> Identity:
        """Return the identity carried by ``token`` or raise ``InvalidToken``."""
        ...


class Auth0TokenVerifier:
    def __init__(
        self,
        domain: str,
        audience: str,
        algorithms: tuple[str, ...] = ("RS256",),
        leeway: int = 60,
        jwks_cache_seconds: int = 300,
        signing_key: Any = None,
    ) -> None:
        self._issuer = f"https://{domain}/"
        self._audience = audience
        self._algorithms = list(algorithms)
        self._leeway = leeway
        self._signing_key = signing_key
        self._jwks = jwt.PyJWKClient(
            f"{self._issuer}.well-known/jwks.json",
            cache_keys=True,
            lifespan=jwks_cache_seconds,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Auth0TokenVerifier":
        return cls(
            domain=settings.AUTH0_DOMAIN,
            audience=settings.AUTH0_AUDIENCE,
            leeway=settings.AUTH0_CLOCK_SKEW_SECONDS,
            jwks_cache_seconds=settings.AUTH0_JWKS_CACHE_SECONDS,
        )

    async def verify(self, token: str) -> Identity:
        try:
            key = await self._key_for(token)
            claims = jwt.decode(
                token,
                key,
                algorithms=self._algorithms,
                audience=self._audience,
                issuer=self._issuer,
                leeway=self._leeway,
            )
        except (jwt.InvalidTokenError, jwt.PyJWKClientError) as exc:
            raise InvalidToken(str(exc)) from exc

        user_id = claims.get("sub")
        if not user_id:
            raise InvalidToken("Token has no subject")
        return Identity(user_id=user_id, permissions=frozenset(claims.get("permissions") or ()))

    async def _key_for(self, token: str) -> Any:
        if self._signing_key is not None:
            return self._signing_key
        signing_key = await asyncio.to_thread(self._jwks.get_signing_key_from_jwt, token)
        return signing_key.key
