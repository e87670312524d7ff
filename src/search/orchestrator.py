"""Search orchestration: strategy routing with semantic-to-keyword fallback."""

import asyncio
import json
import logging
import time
from typing import Any

from src.search.backend import (
    FILTER_JOBS_RPC,
    KEYWORD_SEARCH_RPC,
    SEMANTIC_SEARCH_RPC,
    UNIFIED_SEARCH_RPC,
    SearchBackend,
)
from src.search.embeddings import QueryEmbedder
from src.search.errors import BackendError, DegradedPathError
from src.search.models import (
    DEFAULT_ENTITIES,
    ContentRow,
    FallbackReason,
    JobRow,
    SearchOutcome,
    SearchRequest,
    SearchResult,
    SearchStrategy,
    SemanticRow,
    UnifiedRow,
)
from src.search.strategy import select_strategy

logger = logging.getLogger(__name__)


class SearchOrchestrator:
    """Runs one search request against the backend.

    Strategies:
    - jobs: single job filter call, authoritative total
    - unified: single federated call across entity kinds
    - content: embedding + similarity search, falling back to keyword search
      when the embedding fails, times out, or the similarity search errors
      or comes back empty
    """

    def __init__(
        self,
        backend: SearchBackend,
        embedder: QueryEmbedder | None = None,
        match_threshold: float = 0.7,
        embedding_timeout: float = 3.0,
        semantic_timeout: float = 5.0,
    ):
        """Initialize the orchestrator.

        Args:
            backend: Remote procedure client
            embedder: Query embedder (None disables semantic search)
            match_threshold: Minimum similarity for semantic hits
            embedding_timeout: Seconds before an embedding call is abandoned
            semantic_timeout: Seconds before a similarity search is abandoned
        """
        self.backend = backend
        self.embedder = embedder
        self.match_threshold = match_threshold
        self.embedding_timeout = embedding_timeout
        self.semantic_timeout = semantic_timeout

    async def search(self, request: SearchRequest) -> SearchOutcome:
        """Execute a search request.

        Args:
            request: Validated search parameters

        Returns:
            SearchOutcome with normalized results

        Raises:
            BackendError: If the terminal procedure for the strategy fails
        """
        strategy = select_strategy(request)
        logger.info(
            f"Executing {strategy.value} search for query: '{request.query}' "
            f"(limit={request.limit}, offset={request.offset})"
        )

        started = time.perf_counter()
        total: int | None = None
        fallback_reason = FallbackReason.NONE

        if strategy == SearchStrategy.JOBS:
            results, total = await self._jobs_search(request)
        elif strategy == SearchStrategy.UNIFIED:
            results = await self._unified_search(request)
        else:
            results, fallback_reason = await self._content_search(request)

        db_time_ms = (time.perf_counter() - started) * 1000

        return SearchOutcome(
            results=results,
            strategy=strategy,
            total=total,
            db_time_ms=db_time_ms,
            fallback_reason=fallback_reason,
        )

    async def _call_terminal(self, rpc: str, coro):
        """Await a terminal backend call, normalizing failures to BackendError."""
        try:
            return await coro
        except BackendError:
            raise
        except Exception as e:
            raise BackendError(rpc, str(e) or type(e).__name__, cause=e) from e

    async def _jobs_search(self, request: SearchRequest) -> tuple[list[SearchResult], int]:
        args = self._build_jobs_args(request)
        rows, total = await self._call_terminal(FILTER_JOBS_RPC, self.backend.filter_jobs(args))
        return [JobRow(row).to_result() for row in rows], total

    async def _unified_search(self, request: SearchRequest) -> list[SearchResult]:
        args = self._build_unified_args(request)
        rows = await self._call_terminal(UNIFIED_SEARCH_RPC, self.backend.search_unified(args))
        return [UnifiedRow(row).to_result() for row in rows]

    async def _content_search(
        self, request: SearchRequest
    ) -> tuple[list[SearchResult], FallbackReason]:
        if not request.query.strip():
            results = await self._keyword_search(request)
            return results, FallbackReason.EMPTY_QUERY

        try:
            results = await self._semantic_search(request)
            return results, FallbackReason.NONE
        except DegradedPathError as e:
            logger.warning(
                f"Semantic search unavailable, falling back to keyword search: {e.message}",
                extra={"fallback_reason": e.reason.value, "query": request.query[:50]},
            )
            results = await self._keyword_search(request)
            return results, e.reason

    async def _embed_query(self, query: str) -> list[float]:
        """Embed the query within the embedding timeout.

        Raises:
            DegradedPathError: If no embedder is configured, or the call fails
                or times out
        """
        if self.embedder is None:
            raise DegradedPathError(FallbackReason.SEMANTIC_DISABLED, "No query embedder configured")

        try:
            return await asyncio.wait_for(self.embedder.embed(query), timeout=self.embedding_timeout)
        except asyncio.TimeoutError as e:
            raise DegradedPathError(
                FallbackReason.EMBEDDING_TIMEOUT,
                f"Embedding generation timed out after {self.embedding_timeout}s",
            ) from e
        except Exception as e:
            raise DegradedPathError(
                FallbackReason.EMBEDDING_FAILED, f"Embedding generation failed: {e}"
            ) from e

    async def _semantic_search(self, request: SearchRequest) -> list[SearchResult]:
        """Similarity search; raises DegradedPathError instead of returning nothing."""
        embedding = await self._embed_query(request.query)
        args = self._build_semantic_args(request, embedding)

        try:
            rows = await asyncio.wait_for(
                self.backend.semantic_search(args), timeout=self.semantic_timeout
            )
        except asyncio.TimeoutError as e:
            raise DegradedPathError(
                FallbackReason.SEMANTIC_TIMEOUT,
                f"{SEMANTIC_SEARCH_RPC} timed out after {self.semantic_timeout}s",
            ) from e
        except Exception as e:
            raise DegradedPathError(
                FallbackReason.SEMANTIC_ERROR, f"{SEMANTIC_SEARCH_RPC} failed: {e}"
            ) from e

        if not rows:
            raise DegradedPathError(
                FallbackReason.SEMANTIC_EMPTY, f"{SEMANTIC_SEARCH_RPC} returned no results"
            )

        return [SemanticRow(row).to_result() for row in rows]

    async def _keyword_search(self, request: SearchRequest) -> list[SearchResult]:
        args = self._build_keyword_args(request)
        rows = await self._call_terminal(KEYWORD_SEARCH_RPC, self.backend.search_content(args))
        return [ContentRow(row).to_result() for row in rows]

    def _build_jobs_args(self, request: SearchRequest) -> dict[str, Any]:
        """Forward only the job filters that were supplied."""
        args: dict[str, Any] = {}
        if request.query:
            args["p_search_query"] = request.query
        if request.job_category is not None:
            args["p_category"] = request.job_category
        if request.job_employment is not None:
            args["p_employment_type"] = request.job_employment
        if request.job_experience is not None:
            args["p_experience_level"] = request.job_experience
        if request.job_remote is not None:
            args["p_remote_only"] = request.job_remote
        args["p_limit"] = request.limit
        args["p_offset"] = request.offset
        return args

    def _build_unified_args(self, request: SearchRequest) -> dict[str, Any]:
        args: dict[str, Any] = {
            "p_query": request.query,
            "p_entities": list(request.entities or DEFAULT_ENTITIES),
        }
        args.update(self._content_filters(request))
        args["p_limit"] = request.limit
        args["p_offset"] = request.offset
        return args

    def _build_semantic_args(self, request: SearchRequest, embedding: list[float]) -> dict[str, Any]:
        args: dict[str, Any] = {
            "query_embedding": json.dumps(embedding),
            "match_threshold": self.match_threshold,
            "match_limit": request.limit,
        }
        args.update(self._content_filters(request))
        args["p_offset"] = request.offset
        return args

    def _build_keyword_args(self, request: SearchRequest) -> dict[str, Any]:
        args: dict[str, Any] = {}
        if request.query:
            args["p_query"] = request.query
        args.update(self._content_filters(request))
        args["p_sort"] = request.sort.value
        args["p_limit"] = request.limit
        args["p_offset"] = request.offset
        return args

    @staticmethod
    def _content_filters(request: SearchRequest) -> dict[str, Any]:
        filters: dict[str, Any] = {}
        if request.categories:
            filters["p_categories"] = list(request.categories)
        if request.tags:
            filters["p_tags"] = list(request.tags)
        if request.authors:
            filters["p_authors"] = list(request.authors)
        return filters
