"""Query backend: remote procedures exposed by the directory database.

The search service never touches tables directly. Every read goes through a
named remote procedure; ``SupabaseRpcBackend`` calls them over the PostgREST
``/rest/v1/rpc/<name>`` endpoint.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from src.search.errors import BackendError

logger = logging.getLogger(__name__)

FILTER_JOBS_RPC = "filter_jobs"
UNIFIED_SEARCH_RPC = "search_unified"
KEYWORD_SEARCH_RPC = "search_content_optimized"
SEMANTIC_SEARCH_RPC = "query_content_embeddings"
SUGGESTIONS_RPC = "get_search_suggestions_from_history"
FACETS_RPC = "get_search_facets"
ANALYTICS_RPC = "enqueue_pulse_event"


def _rows(data: Any) -> list[dict[str, Any]]:
    """Unwrap a row list from either a bare array or a ``{data: [...]}`` envelope."""
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("data") or []
    if not isinstance(data, list):
        return []
    return [row for row in data if isinstance(row, dict)]


class SearchBackend(ABC):
    """Remote procedures consumed by the search service."""

    @abstractmethod
    async def call_rpc(self, name: str, args: dict[str, Any] | None = None) -> Any:
        """Invoke a remote procedure and return its decoded JSON result.

        Raises:
            BackendError: If the call fails
        """

    async def filter_jobs(self, args: dict[str, Any]) -> tuple[list[dict[str, Any]], int]:
        """Filter job listings; returns rows and the authoritative total."""
        data = await self.call_rpc(FILTER_JOBS_RPC, args)
        if not isinstance(data, dict):
            return [], 0
        return _rows(data.get("jobs")), int(data.get("total_count") or 0)

    async def search_unified(self, args: dict[str, Any]) -> list[dict[str, Any]]:
        """Federated search across content, companies, jobs and users."""
        return _rows(await self.call_rpc(UNIFIED_SEARCH_RPC, args))

    async def search_content(self, args: dict[str, Any]) -> list[dict[str, Any]]:
        """Keyword search over content listings."""
        return _rows(await self.call_rpc(KEYWORD_SEARCH_RPC, args))

    async def semantic_search(self, args: dict[str, Any]) -> list[dict[str, Any]]:
        """Embedding similarity search over content listings."""
        return _rows(await self.call_rpc(SEMANTIC_SEARCH_RPC, args))

    async def get_search_suggestions(self, query: str, limit: int) -> list[dict[str, Any]]:
        """Autocomplete suggestions drawn from search history."""
        return _rows(await self.call_rpc(SUGGESTIONS_RPC, {"p_query": query, "p_limit": limit}))

    async def get_search_facets(self) -> list[dict[str, Any]]:
        """Per-category facet counts, tags and authors."""
        return _rows(await self.call_rpc(FACETS_RPC))

    async def enqueue_analytics(self, event: dict[str, Any]) -> None:
        """Push a search analytics event onto the analytics queue."""
        await self.call_rpc(ANALYTICS_RPC, {"p_event": event})

    async def close(self) -> None:
        """Release any held connections."""


class SupabaseRpcBackend(SearchBackend):
    """PostgREST remote procedure client."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the backend client.

        Args:
            base_url: Project URL (e.g. https://xyz.supabase.co)
            api_key: Anonymous API key
            timeout: Per-call timeout in seconds
            client: Optional preconfigured httpx client (tests)
        """
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    async def call_rpc(self, name: str, args: dict[str, Any] | None = None) -> Any:
        try:
            response = await self._client.post(f"/rest/v1/rpc/{name}", json=args or {})
        except httpx.HTTPError as e:
            raise BackendError(name, f"Request failed: {e}", cause=e) from e

        if response.status_code >= 400:
            detail = response.text[:200]
            raise BackendError(name, f"HTTP {response.status_code}: {detail}")

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise BackendError(name, "Invalid JSON in response", cause=e) from e

    async def close(self) -> None:
        await self._client.aclose()
