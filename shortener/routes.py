"""FastAPI route definitions for the URL shortener REST API.

Handlers stay thin: they parse input, pick the caller's identity and hand off
to ``URLService`` or ``UserBlockSaga``. Errors raised by the core services are
``ShortenerError`` subclasses and are rendered by the handler installed in
``shortener.main``.

API Endpoint Overview
=====================
::
    GET    /health
        └─ HealthResponse (200)

    POST   /api/urls                            anyone (custom code: authenticated)
        └─ URLResponse (201) or 400/403/409
    GET    /api/urls/{code}                     anyone
        └─ LongURLResponse (200) or 404
    DELETE /api/urls/{code}                     authenticated, own urls only
        └─ 204 or 404
    GET    /api/me/urls                         authenticated
        └─ PaginatedURLs (200)

    GET    /api/admin/urls                      delete:urls
    DELETE /api/admin/urls/{code}               delete:urls
    DELETE /api/admin/users/{user_id}/urls      delete:urls
    POST   /api/admin/users/{user_id}/block     block:users
    POST   /api/admin/users/{user_id}/unblock   block:users
    GET    /api/admin/user-blocks               block:users

    GET    /{code}
        └─ 307 Redirect or 404

Key Behaviours
===============
- The redirect route is registered last so it never shadows ``/api`` or
  ``/health``.
- 307 redirects preserve the HTTP method.
- Deleting an unknown or foreign code is a 404; the service itself treats it
  as a no-op.
"""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Path, Query, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from shortener.auth import Identity
from shortener.cache import URLCache
from shortener.dependencies import (
    ServiceContainer,
    get_block_saga,
    get_cache,
    get_container,
    get_db,
    get_identity,
    get_url_service,
    require_authenticated,
    require_permission,
)
from shortener.enums import HealthStatus, Permission
from shortener.errors import NotFound
from shortener.saga import UserBlockSaga
from shortener.schemas import (
    BlockUserRequest,
    DeleteUserURLsResponse,
    ErrorResponse,
    HealthResponse,
    LongURLResponse,
    PaginatedURLs,
    PaginatedUserBlocks,
    Pagination,
    PaginationParams,
    URLCreate,
    URLResponse,
    UserBlockResponse,
)
from shortener.url_service import URLService

__all__ = ["router"]

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _paginated_urls(urls, total: int, params: PaginationParams, base_url: str) -> PaginatedURLs:
    return PaginatedURLs(
        items=[URLResponse.from_model(url, base_url) for url in urls],
        pagination=Pagination.calculate(total, params.page, params.page_size),
    )


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(
    db: AsyncSession = Depends(get_db),
    cache: URLCache = Depends(get_cache),
    container: ServiceContainer = Depends(get_container),
) -> HealthResponse:
    logger = container.logger
    db_status = HealthStatus.HEALTHY
    cache_status = HealthStatus.HEALTHY

    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    try:
        await cache.ping()
    except Exception as e:
        logger.error(f"Cache health check failed: {e}")
        cache_status = HealthStatus.UNHEALTHY

    overall = (
        HealthStatus.HEALTHY
        if db_status is HealthStatus.HEALTHY and cache_status is HealthStatus.HEALTHY
        else HealthStatus.UNHEALTHY
    )
    return HealthResponse(status=overall, database=db_status, cache=cache_status)


# ============================================================================
# URLS
# ============================================================================


@router.post(
    "/api/urls",
    response_model=URLResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**ERROR_RESPONSES, 409: {"model": ErrorResponse}},
    tags=["urls"],
)
async def create_url(
    payload: URLCreate,
    identity: Identity = Depends(get_identity),
    service: URLService = Depends(get_url_service),
) -> URLResponse:
    url = await service.create_short_url(payload.url, payload.short_code, identity.user_id)
    return URLResponse.from_model(url, service.settings.BASE_URL)


@router.get("/api/urls/{code}", response_model=LongURLResponse, responses=ERROR_RESPONSES, tags=["urls"])
async def get_long_url(code: str, service: URLService = Depends(get_url_service)) -> LongURLResponse:
    return LongURLResponse(long_url=await service.resolve(code))


@router.delete(
    "/api/urls/{code}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=ERROR_RESPONSES,
    tags=["urls"],
)
async def delete_own_url(
    code: str,
    identity: Identity = Depends(require_authenticated),
    service: URLService = Depends(get_url_service),
) -> Response:
    if not await service.delete_url(code, owner_id=identity.user_id):
        raise NotFound("Short URL not found or not owned by user")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/api/me/urls", response_model=PaginatedURLs, responses=ERROR_RESPONSES, tags=["urls"])
async def list_own_urls(
    params: Annotated[PaginationParams, Query()],
    identity: Identity = Depends(require_authenticated),
    service: URLService = Depends(get_url_service),
) -> PaginatedURLs:
    urls, total = await service.list_urls(params.limit, params.offset, user_id=identity.user_id)
    return _paginated_urls(urls, total, params, service.settings.BASE_URL)


# ============================================================================
# ADMIN
# ============================================================================


@router.get("/api/admin/urls", response_model=PaginatedURLs, responses=ERROR_RESPONSES, tags=["admin"])
async def admin_list_urls(
    params: Annotated[PaginationParams, Query()],
    is_custom: bool | None = None,
    user_id: Annotated[str | None, Query(min_length=1, max_length=50)] = None,
    _: Identity = Depends(require_permission(Permission.DELETE_URLS)),
    service: URLService = Depends(get_url_service),
) -> PaginatedURLs:
    urls, total = await service.list_urls(params.limit, params.offset, is_custom=is_custom, user_id=user_id)
    return _paginated_urls(urls, total, params, service.settings.BASE_URL)


@router.delete(
    "/api/admin/urls/{code}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=ERROR_RESPONSES,
    tags=["admin"],
)
async def admin_delete_url(
    code: str,
    _: Identity = Depends(require_permission(Permission.DELETE_URLS)),
    service: URLService = Depends(get_url_service),
) -> Response:
    if not await service.delete_url(code):
        raise NotFound("Short URL not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/api/admin/users/{user_id}/urls",
    response_model=DeleteUserURLsResponse,
    responses=ERROR_RESPONSES,
    tags=["admin"],
)
async def admin_delete_user_urls(
    user_id: Annotated[str, Path(min_length=1, max_length=50)],
    _: Identity = Depends(require_permission(Permission.DELETE_URLS)),
    service: URLService = Depends(get_url_service),
) -> DeleteUserURLsResponse:
    return DeleteUserURLsResponse(deleted=await service.delete_user_urls(user_id))


@router.post(
    "/api/admin/users/{user_id}/block",
    response_model=UserBlockResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    tags=["admin"],
)
async def admin_block_user(
    user_id: Annotated[str, Path(min_length=1, max_length=50)],
    payload: Annotated[BlockUserRequest | None, Body()] = None,
    admin: Identity = Depends(require_permission(Permission.BLOCK_USERS)),
    saga: UserBlockSaga = Depends(get_block_saga),
) -> UserBlockResponse:
    reason = payload.reason if payload else None
    record = await saga.block(user_id, reason, acting_admin_id=admin.user_id)
    return UserBlockResponse.model_validate(record)


@router.post(
    "/api/admin/users/{user_id}/unblock",
    response_model=UserBlockResponse,
    responses=ERROR_RESPONSES,
    tags=["admin"],
)
async def admin_unblock_user(
    user_id: Annotated[str, Path(min_length=1, max_length=50)],
    admin: Identity = Depends(require_permission(Permission.BLOCK_USERS)),
    saga: UserBlockSaga = Depends(get_block_saga),
) -> UserBlockResponse:
    record = await saga.unblock(user_id, acting_admin_id=admin.user_id)
    return UserBlockResponse.model_validate(record)


@router.get(
    "/api/admin/user-blocks",
    response_model=PaginatedUserBlocks,
    responses=ERROR_RESPONSES,
    tags=["admin"],
)
async def admin_list_user_blocks(
    params: Annotated[PaginationParams, Query()],
    _: Identity = Depends(require_permission(Permission.BLOCK_USERS)),
    saga: UserBlockSaga = Depends(get_block_saga),
) -> PaginatedUserBlocks:
    blocks, total = await saga.list_blocks(params.limit, params.offset)
    return PaginatedUserBlocks(
        items=[UserBlockResponse.model_validate(block) for block in blocks],
        pagination=Pagination.calculate(total, params.page, params.page_size),
    )


# ============================================================================
# REDIRECT (registered last)
# ============================================================================


@router.get("/{code}", responses=ERROR_RESPONSES, tags=["redirect"])
async def redirect_to_url(code: str, service: URLService = Depends(get_url_service)) -> RedirectResponse:
    return RedirectResponse(url=await service.resolve(code), status_code=status.HTTP_307_TEMPORARY_REDIRECT)
