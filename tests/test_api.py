"""HTTP API tests through the ASGI transport."""

import pytest
from httpx import AsyncClient

from shortener.enums import HealthStatus
from shortener.identity import IdentityProviderAPIError

from conftest import (
    ADMIN_ID,
    ADMIN_TOKEN,
    OTHER_USER_TOKEN,
    USER_ID,
    USER_TOKEN,
    FakeIdentityProvider,
    FakeRedis,
    auth,
)


# ============================================================================
# HEALTH
# ============================================================================


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == HealthStatus.HEALTHY.value
    assert data["database"] == HealthStatus.HEALTHY.value
    assert data["cache"] == HealthStatus.HEALTHY.value


@pytest.mark.asyncio
async def test_health_check_reports_cache_outage(client: AsyncClient, fake_redis: FakeRedis) -> None:
    fake_redis.fail = True
    data = (await client.get("/health")).json()
    assert data["status"] == HealthStatus.UNHEALTHY.value
    assert data["database"] == HealthStatus.HEALTHY.value
    assert data["cache"] == HealthStatus.UNHEALTHY.value


# ============================================================================
# CREATE / RESOLVE / REDIRECT
# ============================================================================


@pytest.mark.asyncio
async def test_create_anonymous_short_url(client: AsyncClient) -> None:
    response = await client.post("/api/urls", json={"url": "https://www.example.com"})
    assert response.status_code == 201
    data = response.json()
    assert len(data["code"]) == 8
    assert data["long_url"] == "https://www.example.com"
    assert data["short_url"] == f"http://sho.rt/{data['code']}"
    assert data["is_custom"] is False
    assert data["user_id"] is None


@pytest.mark.asyncio
async def test_create_records_authenticated_owner(client: AsyncClient) -> None:
    response = await client.post("/api/urls", json={"url": "https://www.example.com"}, headers=auth(USER_TOKEN))
    assert response.status_code == 201
    assert response.json()["user_id"] == USER_ID


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["not-a-url", "http://[::1"])
async def test_create_invalid_url(client: AsyncClient, url: str) -> None:
    response = await client.post("/api/urls", json={"url": url})
    assert response.status_code == 400
    assert response.json() == {"message": "Validation failed", "errors": {"url": "Invalid URL provided"}}


@pytest.mark.asyncio
async def test_create_missing_body_field(client: AsyncClient) -> None:
    response = await client.post("/api/urls", json={})
    assert response.status_code == 400
    assert "url" in response.json()["errors"]


@pytest.mark.asyncio
async def test_custom_code_requires_authentication(client: AsyncClient) -> None:
    response = await client.post("/api/urls", json={"url": "https://www.example.com", "short_code": "mycode"})
    assert response.status_code == 403
    assert response.json()["message"] == "Only authenticated users can create custom short codes"


@pytest.mark.asyncio
async def test_custom_code(client: AsyncClient) -> None:
    response = await client.post(
        "/api/urls",
        json={"url": "https://www.github.com", "short_code": "mycode"},
        headers=auth(USER_TOKEN),
    )
    assert response.status_code == 201
    data = response.json()
    assert data["code"] == "mycode"
    assert data["is_custom"] is True
    assert data["user_id"] == USER_ID


@pytest.mark.asyncio
async def test_custom_code_conflict(client: AsyncClient) -> None:
    payload = {"url": "https://www.github.com", "short_code": "taken1"}
    await client.post("/api/urls", json=payload, headers=auth(USER_TOKEN))

    response = await client.post(
        "/api/urls",
        json={"url": "https://www.example.com", "short_code": "taken1"},
        headers=auth(OTHER_USER_TOKEN),
    )
    assert response.status_code == 409
    assert response.json() == {"message": "Validation failed", "errors": {"short_code": "Short code is not available"}}

    lookup = await client.get("/api/urls/taken1")
    assert lookup.json()["long_url"] == "https://www.github.com"


@pytest.mark.asyncio
@pytest.mark.parametrize("short_code", ["ab", "a" * 17, "has space"])
async def test_custom_code_validation(client: AsyncClient, short_code: str) -> None:
    response = await client.post(
        "/api/urls",
        json={"url": "https://www.github.com", "short_code": short_code},
        headers=auth(USER_TOKEN),
    )
    assert response.status_code == 400
    assert "short_code" in response.json()["errors"]


@pytest.mark.asyncio
async def test_rejected_token_is_unauthorized(client: AsyncClient) -> None:
    response = await client.post("/api/urls", json={"url": "https://www.example.com"}, headers=auth("forged"))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_long_url(client: AsyncClient, fake_redis: FakeRedis) -> None:
    code = (await client.post("/api/urls", json={"url": "https://www.python.org"})).json()["code"]

    response = await client.get(f"/api/urls/{code}")
    assert response.status_code == 200
    assert response.json() == {"long_url": "https://www.python.org"}
    assert fake_redis.store[f"long_url:{code}"] == "https://www.python.org"


@pytest.mark.asyncio
async def test_get_unknown_code(client: AsyncClient) -> None:
    response = await client.get("/api/urls/doesnotexist")
    assert response.status_code == 404
    assert response.json() == {"message": "Short URL not found"}


@pytest.mark.asyncio
async def test_redirect(client: AsyncClient) -> None:
    code = (await client.post("/api/urls", json={"url": "https://www.google.com"})).json()["code"]

    response = await client.get(f"/{code}", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "https://www.google.com"


@pytest.mark.asyncio
async def test_redirect_unknown_code(client: AsyncClient) -> None:
    response = await client.get("/nonexistent", follow_redirects=False)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_redirect_survives_cache_outage(client: AsyncClient, fake_redis: FakeRedis) -> None:
    code = (await client.post("/api/urls", json={"url": "https://www.google.com"})).json()["code"]
    fake_redis.fail = True

    response = await client.get(f"/{code}", follow_redirects=False)
    assert response.status_code == 307


# ============================================================================
# OWN URLS
# ============================================================================


@pytest.mark.asyncio
async def test_list_own_urls(client: AsyncClient) -> None:
    for i in range(3):
        await client.post("/api/urls", json={"url": f"https://example.com/{i}"}, headers=auth(USER_TOKEN))
    await client.post("/api/urls", json={"url": "https://example.com/other"}, headers=auth(OTHER_USER_TOKEN))

    response = await client.get("/api/me/urls", params={"page": 1, "page_size": 2}, headers=auth(USER_TOKEN))
    assert response.status_code == 200
    data = response.json()
    assert len(data["items"]) == 2
    assert {item["user_id"] for item in data["items"]} == {USER_ID}
    assert data["pagination"] == {
        "page": 1,
        "page_size": 2,
        "total_items": 3,
        "total_pages": 2,
        "has_next": True,
        "has_previous": False,
    }


@pytest.mark.asyncio
async def test_list_own_urls_requires_authentication(client: AsyncClient) -> None:
    response = await client.get("/api/me/urls")
    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [{"page": 0}, {"page": 10001}, {"page_size": 0}, {"page_size": 101}])
async def test_pagination_bounds(client: AsyncClient, params: dict) -> None:
    response = await client.get("/api/me/urls", params=params, headers=auth(USER_TOKEN))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_empty_page(client: AsyncClient) -> None:
    response = await client.get("/api/me/urls", params={"page": 3}, headers=auth(USER_TOKEN))
    assert response.status_code == 200
    assert response.json() == {
        "items": [],
        "pagination": {
            "page": 3,
            "page_size": 20,
            "total_items": 0,
            "total_pages": 0,
            "has_next": False,
            "has_previous": False,
        },
    }


@pytest.mark.asyncio
async def test_delete_own_url(client: AsyncClient, fake_redis: FakeRedis) -> None:
    await client.post(
        "/api/urls",
        json={"url": "https://www.github.com", "short_code": "mine1"},
        headers=auth(USER_TOKEN),
    )
    await client.get("/api/urls/mine1")

    response = await client.delete("/api/urls/mine1", headers=auth(USER_TOKEN))
    assert response.status_code == 204
    assert "long_url:mine1" not in fake_redis.store
    assert (await client.get("/api/urls/mine1")).status_code == 404

    again = await client.delete("/api/urls/mine1", headers=auth(USER_TOKEN))
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_cannot_delete_someone_elses_url(client: AsyncClient) -> None:
    await client.post(
        "/api/urls",
        json={"url": "https://www.github.com", "short_code": "mine1"},
        headers=auth(USER_TOKEN),
    )

    response = await client.delete("/api/urls/mine1", headers=auth(OTHER_USER_TOKEN))
    assert response.status_code == 404
    assert (await client.get("/api/urls/mine1")).status_code == 200


@pytest.mark.asyncio
async def test_delete_requires_authentication(client: AsyncClient) -> None:
    response = await client.delete("/api/urls/mine1")
    assert response.status_code == 401


# ============================================================================
# ADMIN
# ============================================================================


@pytest.mark.asyncio
async def test_admin_routes_require_permission(client: AsyncClient) -> None:
    assert (await client.get("/api/admin/urls")).status_code == 401
    assert (await client.get("/api/admin/urls", headers=auth(USER_TOKEN))).status_code == 403
    assert (await client.post("/api/admin/users/auth0|u1/block", headers=auth(USER_TOKEN))).status_code == 403
    assert (await client.get("/api/admin/user-blocks", headers=auth(USER_TOKEN))).status_code == 403


@pytest.mark.asyncio
async def test_admin_list_urls_with_filters(client: AsyncClient) -> None:
    await client.post("/api/urls", json={"url": "https://a.example.com", "short_code": "cust1"}, headers=auth(USER_TOKEN))
    await client.post("/api/urls", json={"url": "https://b.example.com"}, headers=auth(USER_TOKEN))
    await client.post("/api/urls", json={"url": "https://c.example.com"})

    everything = (await client.get("/api/admin/urls", headers=auth(ADMIN_TOKEN))).json()
    assert everything["pagination"]["total_items"] == 3

    custom = (await client.get("/api/admin/urls", params={"is_custom": "true"}, headers=auth(ADMIN_TOKEN))).json()
    assert [item["code"] for item in custom["items"]] == ["cust1"]

    mine = (await client.get("/api/admin/urls", params={"user_id": USER_ID}, headers=auth(ADMIN_TOKEN))).json()
    assert mine["pagination"]["total_items"] == 2


@pytest.mark.asyncio
async def test_admin_delete_any_url(client: AsyncClient) -> None:
    await client.post("/api/urls", json={"url": "https://a.example.com", "short_code": "cust1"}, headers=auth(USER_TOKEN))

    assert (await client.delete("/api/admin/urls/cust1", headers=auth(ADMIN_TOKEN))).status_code == 204
    assert (await client.delete("/api/admin/urls/cust1", headers=auth(ADMIN_TOKEN))).status_code == 404


@pytest.mark.asyncio
async def test_admin_delete_user_urls(client: AsyncClient) -> None:
    await client.post("/api/urls", json={"url": "https://a.example.com", "short_code": "cust1"}, headers=auth(USER_TOKEN))
    await client.post("/api/urls", json={"url": "https://b.example.com"}, headers=auth(USER_TOKEN))
    await client.post("/api/urls", json={"url": "https://c.example.com"}, headers=auth(OTHER_USER_TOKEN))

    response = await client.delete(f"/api/admin/users/{USER_ID}/urls", headers=auth(ADMIN_TOKEN))
    assert response.status_code == 200
    assert response.json() == {"deleted": 2}

    response = await client.delete(f"/api/admin/users/{USER_ID}/urls", headers=auth(ADMIN_TOKEN))
    assert response.json() == {"deleted": 0}


@pytest.mark.asyncio
async def test_block_and_unblock_user(client: AsyncClient, identity_provider: FakeIdentityProvider) -> None:
    identity_provider.emails[USER_ID] = "user@example.com"

    response = await client.post(
        f"/api/admin/users/{USER_ID}/block",
        json={"reason": "spam"},
        headers=auth(ADMIN_TOKEN),
    )
    assert response.status_code == 201
    block = response.json()
    assert block["user_id"] == USER_ID
    assert block["user_email"] == "user@example.com"
    assert block["blocked_by"] == ADMIN_ID
    assert block["reason"] == "spam"
    assert block["unblocked_at"] is None
    assert USER_ID in identity_provider.blocked

    listing = (await client.get("/api/admin/user-blocks", headers=auth(ADMIN_TOKEN))).json()
    assert listing["pagination"]["total_items"] == 1
    assert listing["items"][0]["user_id"] == USER_ID

    response = await client.post(f"/api/admin/users/{USER_ID}/unblock", headers=auth(ADMIN_TOKEN))
    assert response.status_code == 200
    assert response.json()["unblocked_by"] == ADMIN_ID
    assert response.json()["unblocked_at"] is not None
    assert USER_ID not in identity_provider.blocked

    again = await client.post(f"/api/admin/users/{USER_ID}/unblock", headers=auth(ADMIN_TOKEN))
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_block_without_reason(client: AsyncClient) -> None:
    response = await client.post(f"/api/admin/users/{USER_ID}/block", headers=auth(ADMIN_TOKEN))
    assert response.status_code == 201
    assert response.json()["reason"] is None


@pytest.mark.asyncio
async def test_block_reason_too_long(client: AsyncClient, identity_provider: FakeIdentityProvider) -> None:
    response = await client.post(
        f"/api/admin/users/{USER_ID}/block",
        json={"reason": "x" * 256},
        headers=auth(ADMIN_TOKEN),
    )
    assert response.status_code == 400
    assert identity_provider.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("POST", "/api/admin/users/{user_id}/block"),
        ("POST", "/api/admin/users/{user_id}/unblock"),
        ("DELETE", "/api/admin/users/{user_id}/urls"),
    ],
)
async def test_user_id_path_too_long(
    client: AsyncClient, identity_provider: FakeIdentityProvider, method: str, path: str
) -> None:
    response = await client.request(method, path.format(user_id="u" * 51), headers=auth(ADMIN_TOKEN))

    assert response.status_code == 400
    assert "user_id" in response.json()["errors"]
    assert identity_provider.calls == []


@pytest.mark.asyncio
async def test_block_unknown_user_surfaces_provider_status(
    client: AsyncClient, identity_provider: FakeIdentityProvider
) -> None:
    identity_provider.block_error = IdentityProviderAPIError(404, "The user does not exist.")

    response = await client.post("/api/admin/users/auth0|ghost/block", headers=auth(ADMIN_TOKEN))
    assert response.status_code == 404
    assert "does not exist" not in response.text

    listing = (await client.get("/api/admin/user-blocks", headers=auth(ADMIN_TOKEN))).json()
    assert listing["items"] == []


@pytest.mark.asyncio
async def test_unblock_provider_failure_keeps_local_unblock(
    client: AsyncClient, identity_provider: FakeIdentityProvider
) -> None:
    await client.post(f"/api/admin/users/{USER_ID}/block", headers=auth(ADMIN_TOKEN))
    identity_provider.unblock_error = IdentityProviderAPIError(503, "Service unavailable")

    response = await client.post(f"/api/admin/users/{USER_ID}/unblock", headers=auth(ADMIN_TOKEN))
    assert response.status_code == 503

    listing = (await client.get("/api/admin/user-blocks", headers=auth(ADMIN_TOKEN))).json()
    assert listing["items"][0]["unblocked_by"] == ADMIN_ID
