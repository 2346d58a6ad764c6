"""FastAPI application entry point for the URL shortener service.

This module configures the FastAPI application with middleware, lifecycle
management, error rendering and route registration.

Application Lifecycle Diagram
=============================
::
    ┌──────────────┐
    │  uvicorn     │
    │  startup     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ create_app() │
    │ CORS, errors │
    │ routes       │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ startup:     │
    │ container +  │
    │ init_db()    │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ Serve HTTP   │
    │ requests     │
    └──────┬───────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ shutdown:    │
    │ container.   │
    │ aclose()     │
    └──────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn shortener.main:app --host 0.0.0.0 --port 8080

**Step 2 — Access interactive docs**::
    http://localhost:8080/docs

**Step 3 — Make API calls**::
    curl -X POST http://localhost:8080/api/urls \
         -H "Content-Type: application/json" \
         -d '{"url": "https://example.com"}'

Key Behaviours
===============
- ``create_app(container)`` uses the given container as-is and leaves its
  lifecycle to the caller; without one the lifespan builds and closes it.
- Tables are created automatically on startup.
- ``ShortenerError`` subclasses become ``{"message", "errors"}`` JSON bodies
  with their own status; request validation failures are 400s.
- Prometheus metrics are exposed at ``/metrics`` on the module-level ``app``;
  the default registry allows one instrumented app per process.
"""

__all__ = ["app", "create_app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from shortener.config import get_settings
from shortener.database import init_db
from shortener.dependencies import ServiceContainer
from shortener.errors import ShortenerError, ValidationError
from shortener.routes import router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    if app.state.container is not None:
        yield
        return

    container = ServiceContainer.from_settings()
    app.state.container = container
    await init_db(container.engine)
    container.logger.info(f"{container.settings.APP_NAME} started in {container.settings.APP_ENV}")
    try:
        yield
    finally:
        await container.aclose()
        app.state.container = None


async def shortener_error_handler(request: Request, exc: ShortenerError) -> JSONResponse:
    return JSONResponse(status_code=int(exc.status_code), content=exc.to_dict())


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: dict[str, str] = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path"))
        errors.setdefault(field or "request", error["msg"])
    return await shortener_error_handler(request, ValidationError(errors=errors))


def create_app(container: ServiceContainer | None = None, instrument: bool = False) -> FastAPI:
    settings = container.settings if container is not None else get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version="1.0.0",
        description="URL shortener with custom codes, cache-aside redirects and user blocking",
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ShortenerError, shortener_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

    # /metrics has to be registered before the catch-all redirect route.
    if instrument:
        Instrumentator(
            should_group_status_codes=True,
            should_ignore_untemplated=False,
            should_respect_env_var=False,
        ).instrument(app).expose(app)

    app.include_router(router)
    return app


app = create_app(instrument=True)
