"""Fire-and-forget search analytics.

The search response never waits on analytics. ``AnalyticsEmitter.enqueue``
schedules a detached task; failures inside that task are logged at warning
level and otherwise ignored.
"""

import asyncio
import logging
from typing import Any

from jose import JWTError, jwt
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.search.backend import SearchBackend
from src.search.errors import BackendError

logger = logging.getLogger(__name__)

LOGGED_QUERY_LENGTH = 50


class AnalyticsEmitter:
    """Queues search analytics events without blocking the caller."""

    def __init__(
        self,
        backend: SearchBackend,
        jwt_secret: str | None = None,
        jwt_audience: str = "authenticated",
        enabled: bool = True,
        max_retries: int = 3,
        retry_wait_max: float = 2.0,
    ):
        """Initialize the emitter.

        Args:
            backend: Backend exposing the analytics enqueue procedure
            jwt_secret: HS256 secret for verifying caller bearer tokens
                (None means every event is anonymous)
            jwt_audience: Expected token audience
            enabled: Whether events are sent at all
            max_retries: Delivery attempts for backend failures
            retry_wait_max: Upper bound on the backoff between attempts
        """
        self.backend = backend
        self.jwt_secret = jwt_secret
        self.jwt_audience = jwt_audience
        self.enabled = enabled
        self.max_retries = max_retries
        self.retry_wait_max = retry_wait_max
        self._tasks: set[asyncio.Task] = set()

    def enqueue(
        self,
        query: str,
        filters: dict[str, Any],
        result_count: int,
        auth_header: str | None = None,
        user_id: str | None = None,
    ) -> asyncio.Task | None:
        """Schedule an analytics event and return immediately.

        Must be called from a running event loop. Returns the detached task
        (mainly for tests), or None when nothing was scheduled.
        """
        if not self.enabled or not query:
            return None

        task = asyncio.create_task(
            self._send(query, filters, result_count, auth_header, user_id)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _send(
        self,
        query: str,
        filters: dict[str, Any],
        result_count: int,
        auth_header: str | None,
        user_id: str | None,
    ) -> None:
        try:
            resolved_user = user_id or self.resolve_user_id(auth_header)
            event = {
                "event_type": "search",
                "query": query,
                "filters": filters,
                "result_count": result_count,
                "user_id": resolved_user,
            }
            await self._deliver(event)
        except Exception as e:
            logger.warning(
                "Failed to enqueue search analytics",
                extra={
                    "query": query[:LOGGED_QUERY_LENGTH],
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            )

    async def _deliver(self, event: dict[str, Any]) -> None:
        """Send one event, retrying backend failures with exponential backoff."""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(BackendError),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=0.1, max=self.retry_wait_max),
            reraise=True,
        ):
            with attempt:
                await self.backend.enqueue_analytics(event)

    def resolve_user_id(self, auth_header: str | None) -> str | None:
        """Read the user id from a bearer token; anonymous on any failure."""
        if not auth_header or not auth_header.startswith("Bearer "):
            return None
        if not self.jwt_secret:
            return None

        token = auth_header[len("Bearer "):].strip()
        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=["HS256"],
                audience=self.jwt_audience,
            )
        except JWTError as e:
            logger.debug(f"Analytics token rejected, recording anonymously: {e}")
            return None

        return payload.get("sub")

    @property
    def pending(self) -> int:
        """Number of analytics tasks still in flight."""
        return len(self._tasks)

    async def aclose(self, timeout: float = 5.0) -> None:
        """Wait briefly for in-flight events, then cancel the rest."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} pending analytics events on shutdown")
