"""Application Insights integration for search telemetry.

Telemetry is optional. When a connection string is configured, request
records, search events and exceptions are forwarded to Azure Application
Insights through the OpenCensus exporters; otherwise every call is a no-op.
"""

import logging
from typing import Any

from opencensus.ext.azure.log_exporter import AzureLogHandler
from opencensus.ext.azure.trace_exporter import AzureExporter
from opencensus.trace import config_integration
from opencensus.trace.samplers import ProbabilitySampler
from opencensus.trace.tracer import Tracer

logger = logging.getLogger("directory_search_api")

# Outbound calls traced as dependencies (backend procedures, embeddings)
TRACE_INTEGRATIONS = ["httpx"]


class ApplicationInsightsClient:
    """Client for sending telemetry to Application Insights.

    Wraps the OpenCensus Azure exporters. Custom properties travel as
    ``custom_dimensions`` on log records picked up by the Azure log handler.
    """

    def __init__(self, connection_string: str | None = None, sampling_rate: float = 1.0):
        """Initialize the Application Insights client.

        Args:
            connection_string: Application Insights connection string
                Format: InstrumentationKey=xxx;IngestionEndpoint=https://...
            sampling_rate: Fraction of traces exported (0.0 - 1.0)
        """
        self.connection_string = connection_string
        self.enabled = bool(connection_string)
        self.tracer = None
        self.handler = None

        if self.enabled:
            config_integration.trace_integrations(TRACE_INTEGRATIONS)

            self.tracer = Tracer(
                exporter=AzureExporter(connection_string=connection_string),
                sampler=ProbabilitySampler(sampling_rate),
            )

            self.handler = AzureLogHandler(connection_string=connection_string)
            logger.addHandler(self.handler)

    def track_request(
        self,
        name: str,
        url: str,
        duration_ms: int,
        response_code: int,
        success: bool,
        request_id: str | None = None,
        client_id: str | None = None,
        properties: dict[str, Any] | None = None,
    ):
        """Track an HTTP request.

        Args:
            name: Request name (e.g., "GET /search")
            url: Sanitized request path
            duration_ms: Request duration in milliseconds
            response_code: HTTP response code
            success: Whether the request was successful
            request_id: Request identifier echoed in X-Request-ID
            client_id: Rate limit client identifier
            properties: Additional custom properties
        """
        if not self.enabled:
            return

        logger.info(
            f"Request: {name}",
            extra={
                "custom_dimensions": {
                    "request_name": name,
                    "url": url,
                    "duration_ms": duration_ms,
                    "response_code": response_code,
                    "success": success,
                    "request_id": request_id,
                    "client_id": client_id,
                    **(properties or {}),
                }
            },
        )

    def track_metric(self, name: str, value: float, properties: dict[str, Any] | None = None):
        """Track a custom metric."""
        if not self.enabled:
            return

        logger.info(
            f"Metric: {name} = {value}",
            extra={
                "custom_dimensions": {
                    "metric_name": name,
                    "metric_value": value,
                    **(properties or {}),
                }
            },
        )

    def track_event(self, name: str, properties: dict[str, Any] | None = None):
        """Track a custom event."""
        if not self.enabled:
            return

        logger.info(
            f"Event: {name}",
            extra={"custom_dimensions": {"event_name": name, **(properties or {})}},
        )

    def track_exception(self, exception: Exception, properties: dict[str, Any] | None = None):
        """Track an exception.

        Args:
            exception: The exception to track
            properties: Additional properties
        """
        if not self.enabled:
            return

        logger.error(
            f"Exception: {type(exception).__name__}",
            exc_info=exception,
            extra={
                "custom_dimensions": {
                    "exception_type": type(exception).__name__,
                    "exception_message": str(exception),
                    **(properties or {}),
                }
            },
        )

    def track_search(
        self,
        search_type: str,
        result_count: int,
        duration_ms: int,
        fallback_reason: str | None = None,
    ):
        """Record a completed search as an event plus a latency metric."""
        properties = {"search_type": search_type, "result_count": result_count}
        if fallback_reason:
            properties["fallback_reason"] = fallback_reason
        self.track_event("search", properties)
        self.track_metric("search_duration_ms", duration_ms, {"search_type": search_type})

    def flush(self):
        """Flush pending telemetry. Called before application shutdown."""
        if self.handler is not None:
            self.handler.flush()

    def close(self):
        """Flush and detach the Azure log handler."""
        if self.handler is None:
            return
        self.flush()
        logger.removeHandler(self.handler)
        self.handler = None
        self.enabled = False


# Global instance (initialized in dependencies)
_app_insights: ApplicationInsightsClient | None = None


def init_app_insights(connection_string: str | None) -> ApplicationInsightsClient:
    """Initialize the global Application Insights client.

    Args:
        connection_string: Application Insights connection string

    Returns:
        The initialized client
    """
    global _app_insights

    if _app_insights is not None:
        _app_insights.close()
    _app_insights = ApplicationInsightsClient(connection_string)
    return _app_insights


def get_app_insights() -> ApplicationInsightsClient:
    """Get the Application Insights client instance.

    Raises:
        RuntimeError: If not initialized
    """
    if _app_insights is None:
        raise RuntimeError("Application Insights not initialized")
    return _app_insights


def shutdown_app_insights():
    """Flush and release the global client, if any."""
    global _app_insights

    if _app_insights is not None:
        _app_insights.close()
        _app_insights = None
