"""Shared dependencies for FastAPI application.

This module provides settings and dependency injection functions for the
search endpoints: the backend client, the orchestrator, the analytics
emitter and the rate limiter.
"""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..search.analytics import AnalyticsEmitter
from ..search.backend import SearchBackend, SupabaseRpcBackend
from ..search.embeddings import QueryEmbedder
from ..search.errors import RateLimitError
from ..search.orchestrator import SearchOrchestrator
from .middleware.app_insights import init_app_insights, shutdown_app_insights
from .middleware.logging import configure_logging
from .middleware.rate_limit import (
    RATE_LIMIT_PRESETS,
    RateLimiter,
    RateLimitResult,
    rate_limit_headers,
    resolve_client_identifier,
)

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Backend (PostgREST remote procedures)
    supabase_url: str = Field(..., description="Project URL hosting the search procedures")
    supabase_anon_key: str = Field(..., description="Anonymous API key for procedure calls")
    supabase_jwt_secret: str | None = Field(
        default=None, description="JWT secret used to read user ids for analytics"
    )
    rpc_timeout: float = Field(default=10.0, description="Per-call backend timeout in seconds")

    # Embedding settings
    openai_api_key: str | None = Field(default=None, description="OpenAI or Azure OpenAI API key")
    azure_openai_endpoint: str | None = Field(
        default=None, description="Azure OpenAI endpoint URL (unset for api.openai.com)"
    )
    azure_openai_api_version: str = Field(
        default="2024-02-01", description="Azure OpenAI API version"
    )
    embedding_model: str = Field(
        default="text-embedding-3-small", description="Embedding model or deployment name"
    )
    embedding_dimensions: int = Field(
        default=384, description="Embedding size; must match the content embedding index"
    )

    # Semantic search settings
    semantic_search_enabled: bool = Field(default=True, description="Try semantic search first")
    semantic_match_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Minimum similarity for semantic hits"
    )
    embedding_timeout: float = Field(default=3.0, description="Embedding timeout in seconds")
    semantic_timeout: float = Field(default=5.0, description="Similarity search timeout in seconds")

    # Analytics settings
    analytics_enabled: bool = Field(default=True, description="Enqueue search analytics events")

    # Rate limiting settings
    rate_limit_max_entries: int = Field(
        default=10_000, description="Maximum tracked rate limit keys"
    )
    rate_limit_cleanup_interval: float = Field(
        default=60.0, description="Seconds between passive sweeps of expired windows"
    )

    # API settings
    api_version: str = Field(default="1.0.0", description="API version")
    api_title: str = Field(default="Directory Search API", description="API title")
    api_description: str = Field(
        default="Unified search over directory content, companies, jobs and users",
        description="API description",
    )
    log_level: str = Field(default="INFO", description="Logging level")

    # Monitoring settings
    applicationinsights_connection_string: str | None = Field(
        default=None, description="Application Insights connection string for telemetry"
    )

    # CORS settings
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


# Global service instances (initialized during lifespan)
_services: dict[str, object] = {}


async def init_services(settings: Settings) -> None:
    """Initialize application services.

    Called during FastAPI lifespan startup.
    """
    configure_logging(settings.log_level)

    if settings.applicationinsights_connection_string:
        init_app_insights(settings.applicationinsights_connection_string)
        logger.info("Application Insights telemetry enabled")

    backend = SupabaseRpcBackend(
        base_url=settings.supabase_url,
        api_key=settings.supabase_anon_key,
        timeout=settings.rpc_timeout,
    )
    _services["backend"] = backend

    embedder = None
    if settings.semantic_search_enabled and (
        settings.openai_api_key or settings.azure_openai_endpoint
    ):
        embedder = QueryEmbedder(
            api_key=settings.openai_api_key,
            azure_endpoint=settings.azure_openai_endpoint,
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
            api_version=settings.azure_openai_api_version,
        )
        _services["embedder"] = embedder
    else:
        logger.info("Semantic search disabled; content searches use keyword search only")

    _services["orchestrator"] = SearchOrchestrator(
        backend=backend,
        embedder=embedder,
        match_threshold=settings.semantic_match_threshold,
        embedding_timeout=settings.embedding_timeout,
        semantic_timeout=settings.semantic_timeout,
    )

    _services["analytics"] = AnalyticsEmitter(
        backend=backend,
        jwt_secret=settings.supabase_jwt_secret,
        enabled=settings.analytics_enabled,
    )

    _services["rate_limiter"] = RateLimiter(
        max_entries=settings.rate_limit_max_entries,
        cleanup_interval=settings.rate_limit_cleanup_interval,
    )


async def cleanup_services() -> None:
    """Cleanup application services.

    Called during FastAPI lifespan shutdown.
    """
    if "analytics" in _services:
        await _services["analytics"].aclose()

    if "embedder" in _services:
        await _services["embedder"].close()

    if "backend" in _services:
        await _services["backend"].close()

    shutdown_app_insights()
    _services.clear()


def get_search_backend() -> SearchBackend:
    """Get the backend client instance."""
    if "backend" not in _services:
        raise RuntimeError("Services not initialized. Call init_services() first.")
    return _services["backend"]


def get_orchestrator() -> SearchOrchestrator:
    """Get the search orchestrator instance."""
    if "orchestrator" not in _services:
        raise RuntimeError("Services not initialized. Call init_services() first.")
    return _services["orchestrator"]


def get_analytics() -> AnalyticsEmitter:
    """Get the analytics emitter instance."""
    if "analytics" not in _services:
        raise RuntimeError("Services not initialized. Call init_services() first.")
    return _services["analytics"]


def get_rate_limiter() -> RateLimiter:
    """Get the rate limiter instance."""
    if "rate_limiter" not in _services:
        raise RuntimeError("Services not initialized. Call init_services() first.")
    return _services["rate_limiter"]


def get_cors_origins() -> list[str]:
    """Allowed CORS origins.

    Error responses need CORS headers even when required settings are missing
    (the app cannot start then), so that case falls back to any origin.
    Malformed CORS settings are not caught.
    """
    try:
        return get_settings().cors_origins
    except ValidationError as e:
        if any("cors_origins" in error["loc"] for error in e.errors()):
            raise
        logger.warning(
            "Settings unavailable; allowing any CORS origin",
            extra={"error_count": e.error_count()},
        )
        return ["*"]


def rate_limited(preset: str):
    """Dependency factory enforcing a named rate limit preset.

    The returned dependency resolves to the RateLimitResult so handlers can
    echo X-RateLimit-* headers; denied requests raise RateLimitError.
    """
    config = RATE_LIMIT_PRESETS[preset]

    async def check_rate_limit(
        request: Request,
        limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    ) -> RateLimitResult:
        identifier = resolve_client_identifier(request.headers)
        result = limiter.check(identifier, config)
        if not result.allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={
                    "client_id": identifier,
                    "preset": preset,
                    "retry_after": result.retry_after,
                },
            )
            raise RateLimitError(
                message=f"Rate limit exceeded. Try again in {result.retry_after} seconds.",
                retry_after=result.retry_after,
                headers=rate_limit_headers(result),
            )
        request.state.rate_limit = result
        return result

    return check_rate_limit


# Type aliases for dependency injection
SearchBackendDep = Annotated[SearchBackend, Depends(get_search_backend)]
OrchestratorDep = Annotated[SearchOrchestrator, Depends(get_orchestrator)]
AnalyticsDep = Annotated[AnalyticsEmitter, Depends(get_analytics)]
RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter)]
CorsOriginsDep = Annotated[list[str], Depends(get_cors_origins)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
