"""Identity provider capability used by the user block saga.

The saga only needs two operations, so the provider is consumed through the
narrow ``IdentityProvider`` protocol. ``Auth0Management`` implements it on top
of the Auth0 Management API v2 with ``httpx``.

Flow Diagram — Unblock
======================
::
    ┌──────────────┐
    │ unblock_user │
    └──────┬───────┘
           ▼
    ┌────────────────────────┐
    │ PATCH /api/v2/users/id │
    │ {"blocked": false}     │
    └──────┬─────────────────┘
           ▼
    ┌─────────────────────────────┐
    │ DELETE /api/v2/user-blocks/ │
    │ id (brute-force lockouts)   │
    └─────────────────────────────┘

Key Behaviours
===============
- Management tokens come from the client-credentials grant and are reused
  until shortly before they expire.
- HTTP error responses raise ``IdentityProviderAPIError`` carrying the
  provider's status code.
- Transport failures propagate as ``httpx.RequestError``.
- Nothing is retried here.
"""

import time
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote

import httpx

from shortener.config import Settings

__all__ = [
    "IdentityProvider",
    "IdentityProviderAPIError",
    "ProviderUser",
    "Auth0Management",
]

TOKEN_EXPIRY_MARGIN_SECONDS = 60


@dataclass(frozen=True)
class ProviderUser:
    user_id: str
    email: str | None = None


class IdentityProviderAPIError(Exception):
    """Structured error returned by the identity provider."""

    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(f"identity provider returned {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class IdentityProvider(Protocol):
    async def block_user(self, user_id: str) -> ProviderUser: ...

    async def unblock_user(self, user_id: str) -> None: ...


class Auth0Management:
    def __init__(
        self,
        domain: str,
        client_id: str,
        client_secret: str,
        audience: str,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = f"https://{domain}"
        self._client_id = client_id
        self._client_secret = client_secret
        self._audience = audience
        self._client = client or httpx.AsyncClient(base_url=self._base_url, timeout=timeout)
        self._token: str | None = None
        self._token_expires_at = 0.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "Auth0Management":
        return cls(
            domain=settings.AUTH0_DOMAIN,
            client_id=settings.AUTH0_CLIENT_ID,
            client_secret=settings.AUTH0_CLIENT_SECRET,
            audience=settings.auth0_management_audience,
            timeout=settings.IDENTITY_PROVIDER_TIMEOUT_SECONDS,
        )

    async def block_user(self, user_id: str) -> ProviderUser:
        payload = await self._request("PATCH", f"/api/v2/users/{quote(user_id, safe='')}", json={"blocked": True})
        return ProviderUser(user_id=user_id, email=(payload or {}).get("email"))

    async def unblock_user(self, user_id: str) -> None:
        encoded = quote(user_id, safe="")
        await self._request("PATCH", f"/api/v2/users/{encoded}", json={"blocked": False})
        # Also clear any brute-force protection lockout for the user.
        await self._request("DELETE", f"/api/v2/user-blocks/{encoded}")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, json: dict | None = None) -> dict | None:
        token = await self._access_token()
        response = await self._client.request(
            method,
            path,
            json=json,
            headers={"Authorization": f"Bearer {token}"},
        )
        self._raise_for_status(response)
        if not response.content:
            return None
        return response.json()

    async def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        response = await self._client.post(
            "/oauth/token",
            json={
                "grant_type": "client_credentials",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "audience": self._audience,
            },
        )
        self._raise_for_status(response)
        payload = response.json()
        self._token = payload["access_token"]
        expires_in = int(payload.get("expires_in", 0))
        self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0)
        return self._token

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            body = response.json()
        except ValueError:
            body = None
        message = body.get("message", "") if isinstance(body, dict) else response.text[:200]
        raise IdentityProviderAPIError(response.status_code, message)
