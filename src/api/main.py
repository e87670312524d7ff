"""FastAPI application for the Directory Search API.

This module defines the main FastAPI application with:
- Lifespan management for service initialization/cleanup
- Health and readiness check endpoints
- Exception handlers mapping search errors and unexpected failures to JSON
  with CORS headers
- Request logging middleware
- OpenAPI documentation
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from .dependencies import cleanup_services, get_cors_origins, get_settings, init_services
from .headers import error_response
from .middleware.app_insights import get_app_insights
from .middleware.logging import LoggingMiddleware
from .models.search import ErrorResponse
from ..search.errors import BackendError, RateLimitError, SearchError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Manages initialization and cleanup of services:
    - Startup: Create the backend client, embedder, orchestrator, analytics
      emitter and rate limiter
    - Shutdown: Drain pending analytics and close HTTP clients
    """
    # Startup
    settings = get_settings()
    await init_services(settings)
    logger.info(
        "Directory Search API started",
        extra={"version": settings.api_version, "semantic_search": settings.semantic_search_enabled},
    )

    yield

    # Shutdown
    await cleanup_services()
    logger.info("Directory Search API stopped")


async def search_error_handler(request: Request, exc: SearchError):
    """Map search errors to JSON bodies, keeping CORS headers on failures."""
    body = ErrorResponse(error=exc.message)
    extra_headers: dict[str, str] = {}

    if isinstance(exc, RateLimitError):
        body.retryAfter = exc.retry_after
        extra_headers.update(exc.headers)
        extra_headers["Retry-After"] = str(exc.retry_after)
    elif isinstance(exc, BackendError):
        body.rpc = exc.rpc

    return error_response(
        exc.status_code,
        body.model_dump(exclude_none=True),
        request.headers.get("origin"),
        get_cors_origins(),
        extra_headers,
    )


def _track_exception(request: Request, exc: Exception) -> None:
    try:
        app_insights = get_app_insights()
    except RuntimeError:
        return
    app_insights.track_exception(exc, {"path": request.url.path})


async def unhandled_error_handler(request: Request, exc: Exception):
    """Answer unexpected failures, including dependency resolution errors, with a 500."""
    logger.error(
        f"Unhandled error: {exc}",
        extra={"path": request.url.path, "error_type": type(exc).__name__},
        exc_info=exc,
    )
    _track_exception(request, exc)

    return error_response(
        500,
        ErrorResponse(error="Internal server error").model_dump(exclude_none=True),
        request.headers.get("origin"),
        get_cors_origins(),
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    This function is separated to allow for easier testing and to avoid
    loading settings at module level.
    """
    # Get settings for app metadata
    try:
        settings = get_settings()
        title = settings.api_title
        description = settings.api_description
        version = settings.api_version
    except Exception:
        # Use defaults if settings can't be loaded (e.g., in tests)
        title = "Directory Search API"
        description = "Unified search over directory content, companies, jobs and users"
        version = "1.0.0"

    app = FastAPI(
        title=title,
        description=description,
        version=version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS headers are emitted by the handlers themselves so that error
    # responses and preflights carry them too.
    app.add_exception_handler(SearchError, search_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.add_middleware(LoggingMiddleware)

    return app


# Create the application instance
app = create_app()


# Health check endpoints
@app.get(
    "/health",
    tags=["health"],
    summary="Health check",
    description="Basic health check endpoint. Returns 200 if the service is running.",
)
async def health_check():
    """Health check endpoint.

    This endpoint does not check dependencies.
    """
    return {"status": "healthy"}


@app.get(
    "/ready",
    tags=["health"],
    summary="Readiness check",
    description="Readiness check endpoint. Returns 200 if the service is ready to handle requests.",
)
async def readiness_check():
    """Readiness check endpoint.

    Reports which services were initialized. The embedder is optional:
    without it content searches run on keyword search only.
    """
    from .dependencies import _services

    dependencies = {
        "backend": "ready" if "backend" in _services else "not_initialized",
        "orchestrator": "ready" if "orchestrator" in _services else "not_initialized",
        "analytics": "ready" if "analytics" in _services else "not_initialized",
        "rate_limiter": "ready" if "rate_limiter" in _services else "not_initialized",
    }

    all_ready = all(status == "ready" for status in dependencies.values())
    dependencies["embedder"] = "ready" if "embedder" in _services else "disabled"

    return {
        "status": "ready" if all_ready else "not_ready",
        "dependencies": dependencies,
    }


# Register API routers
from .routers import search

app.include_router(search.router)
