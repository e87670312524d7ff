"""Request logging for the search API.

Every request gets an ``X-Request-ID`` (the caller's, when it sends a usable
one) and a start/completion record with the sanitized route, client
identifier and duration. Completed requests are also sent to Application
Insights when telemetry is configured. Search handlers add their own
structured context through ``search_log_context`` and ``StructuredLogger``.
"""

import logging
import re
import time
import uuid
from typing import Any, Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..validation import sanitize_route
from .app_insights import get_app_insights
from .rate_limit import resolve_client_identifier

logger = logging.getLogger("directory_search_api")

REQUEST_ID_HEADER = "X-Request-ID"
DEFAULT_EXCLUDED_PATHS = frozenset({"/health", "/ready"})

# Caller-supplied request ids are echoed into headers and logs
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

# Libraries that log every outbound call at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def resolve_request_id(header_value: str | None) -> str:
    """Reuse a well-formed caller request id, otherwise mint a new one."""
    if header_value and _REQUEST_ID_PATTERN.match(header_value):
        return header_value
    return str(uuid.uuid4())


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests and responses.

    This middleware:
    1. Assigns a request ID to each request
    2. Logs the sanitized route and client identifier
    3. Logs completion at a level matching the status code, with the
       remaining rate limit budget when the route applied one

    Health checks are answered without log records.
    """

    def __init__(
        self,
        app,
        enabled: bool = True,
        excluded_paths: frozenset[str] = DEFAULT_EXCLUDED_PATHS,
    ):
        """Initialize the logging middleware.

        Args:
            app: The FastAPI application
            enabled: Whether logging is enabled (default: True)
            excluded_paths: Paths that still get a request ID but are not logged
        """
        super().__init__(app)
        self.enabled = enabled
        self.excluded_paths = excluded_paths

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        if not self.enabled or request.url.path in self.excluded_paths:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        route = sanitize_route(request.url.path)
        client_id = resolve_client_identifier(request.headers)
        start = time.perf_counter()

        logger.debug(
            "Request started",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": route,
                "client_id": client_id,
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.error(
                f"Request failed: {e}",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": route,
                    "duration_ms": duration_ms,
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            self._track_request(request.method, route, 500, duration_ms, request_id, client_id)
            raise

        response.headers[REQUEST_ID_HEADER] = request_id

        log_level = logging.INFO
        if response.status_code >= 500:
            log_level = logging.ERROR
        elif response.status_code >= 400:
            log_level = logging.WARNING

        extra: dict[str, Any] = {
            "request_id": request_id,
            "method": request.method,
            "path": route,
            "status_code": response.status_code,
            "duration_ms": int((time.perf_counter() - start) * 1000),
            "client_id": client_id,
        }
        rate_limit = getattr(request.state, "rate_limit", None)
        if rate_limit is not None:
            extra["rate_limit_remaining"] = rate_limit.remaining

        logger.log(log_level, "Request completed", extra=extra)
        self._track_request(
            request.method,
            route,
            response.status_code,
            extra["duration_ms"],
            request_id,
            client_id,
        )
        return response

    def _track_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: int,
        request_id: str,
        client_id: str,
    ):
        """Send the request to Application Insights when telemetry is configured."""
        try:
            app_insights = get_app_insights()
        except RuntimeError:
            return

        app_insights.track_request(
            name=f"{method} {path}",
            url=path,
            duration_ms=duration_ms,
            response_code=status_code,
            success=status_code < 400,
            request_id=request_id,
            client_id=client_id,
        )


def configure_logging(log_level: str = "INFO"):
    """Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


class StructuredLogger:
    """Logger wrapper that attaches keyword arguments as record attributes."""

    def __init__(self, name: str):
        """Initialize structured logger.

        Args:
            name: Logger name
        """
        self.logger = logging.getLogger(name)

    def info(self, message: str, **kwargs):
        """Log info message with structured data.

        Args:
            message: Log message
            **kwargs: Additional structured data
        """
        self.logger.info(message, extra=kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with structured data."""
        self.logger.warning(message, extra=kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with structured data.

        Args:
            message: Log message
            **kwargs: Additional structured data
        """
        self.logger.error(message, extra=kwargs)

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, extra=kwargs)


def search_log_context(
    query: str | None = None,
    search_type: str | None = None,
    filters: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Build the structured context attached to search log records."""
    context: dict[str, Any] = {"operation": "search"}
    if request_id:
        context["request_id"] = request_id
    if query is not None:
        context["query"] = query
    if search_type is not None:
        context["search_type"] = search_type
    if filters:
        context["filters"] = {k: v for k, v in filters.items() if v is not None}
    return context
