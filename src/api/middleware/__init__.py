"""API middleware components."""

from .app_insights import ApplicationInsightsClient, get_app_insights, init_app_insights
from .logging import (
    LoggingMiddleware,
    StructuredLogger,
    configure_logging,
    resolve_request_id,
    search_log_context,
)
from .rate_limit import (
    RATE_LIMIT_PRESETS,
    InMemoryRateLimitStore,
    RateLimitConfig,
    RateLimiter,
    RateLimitRecord,
    RateLimitResult,
    RateLimitStore,
    rate_limit_headers,
    resolve_client_identifier,
)

__all__ = [
    "ApplicationInsightsClient",
    "get_app_insights",
    "init_app_insights",
    "LoggingMiddleware",
    "StructuredLogger",
    "configure_logging",
    "resolve_request_id",
    "search_log_context",
    "RATE_LIMIT_PRESETS",
    "InMemoryRateLimitStore",
    "RateLimitConfig",
    "RateLimiter",
    "RateLimitRecord",
    "RateLimitResult",
    "RateLimitStore",
    "rate_limit_headers",
    "resolve_client_identifier",
]
