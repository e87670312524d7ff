"""Response assembly for search results."""

from typing import Any

from src.search.models import SearchRequest, SearchStrategy


def build_filters_echo(request: SearchRequest, strategy: SearchStrategy) -> dict[str, Any]:
    """Echo the filters that applied to the chosen strategy.

    Sort is always echoed. Content filters apply to content and unified
    searches, the entity selector to unified searches, and job filters only
    to job searches.
    """
    filters: dict[str, Any] = {"sort": request.sort.value}

    if strategy in (SearchStrategy.CONTENT, SearchStrategy.UNIFIED):
        if request.categories is not None:
            filters["categories"] = list(request.categories)
        if request.tags is not None:
            filters["tags"] = list(request.tags)
        if request.authors is not None:
            filters["authors"] = list(request.authors)

    if strategy == SearchStrategy.UNIFIED and request.entities is not None:
        filters["entities"] = list(request.entities)

    if strategy == SearchStrategy.JOBS:
        if request.job_category is not None:
            filters["job_category"] = request.job_category
        if request.job_employment is not None:
            filters["job_employment"] = request.job_employment
        if request.job_experience is not None:
            filters["job_experience"] = request.job_experience
        if request.job_remote is not None:
            filters["job_remote"] = request.job_remote

    return filters


def build_analytics_filters(request: SearchRequest, strategy: SearchStrategy) -> dict[str, Any]:
    """Filters recorded with the analytics event; job searches are tagged."""
    filters = build_filters_echo(request, strategy)
    if strategy == SearchStrategy.JOBS:
        filters["entity"] = "job"
    return filters


def build_pagination(
    result_count: int,
    limit: int,
    offset: int,
    total: int | None,
) -> dict[str, Any]:
    """Compute the pagination block.

    With an authoritative total, ``hasMore`` is exact. Without one it is
    approximated as a full page, which is wrong when the last page happens
    to be exactly ``limit`` rows long.
    """
    if total is not None:
        return {
            "total": total,
            "limit": limit,
            "offset": offset,
            "hasMore": offset + result_count < total,
        }
    return {
        "total": result_count,
        "limit": limit,
        "offset": offset,
        "hasMore": result_count == limit,
    }


def wire_search_type(strategy: SearchStrategy) -> str:
    """Coarsen the strategy for the wire; job searches report as unified."""
    if strategy == SearchStrategy.JOBS:
        return SearchStrategy.UNIFIED.value
    return strategy.value


def assemble_response(
    request: SearchRequest,
    strategy: SearchStrategy,
    results: list[dict[str, Any]],
    total: int | None,
    db_time_ms: float,
    total_time_ms: float,
) -> dict[str, Any]:
    """Build the search response payload."""
    return {
        "results": results,
        "query": request.query,
        "filters": build_filters_echo(request, strategy),
        "pagination": build_pagination(len(results), request.limit, request.offset, total),
        "performance": {
            "dbTime": round(db_time_ms),
            "totalTime": round(total_time_ms),
        },
        "searchType": wire_search_type(strategy),
    }
