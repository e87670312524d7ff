"""Search API router."""

import logging
import time
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from src.api.dependencies import (
    AnalyticsDep,
    CorsOriginsDep,
    OrchestratorDep,
    SearchBackendDep,
    rate_limited,
)
from src.api.headers import cache_headers, cors_headers, error_response, security_headers
from src.api.middleware.app_insights import get_app_insights
from src.api.middleware.logging import StructuredLogger, search_log_context
from src.api.middleware.rate_limit import RateLimitResult, rate_limit_headers
from src.api.models.search import (
    AutocompleteResponse,
    Facet,
    FacetsResponse,
    SearchResponse,
    Suggestion,
)
from src.api.validation import (
    EXPERIENCE_LEVELS,
    JOB_CATEGORIES,
    JOB_EMPLOYMENT_TYPES,
    VALID_ENTITIES,
    VALID_SORTS,
    parse_bool_param,
    parse_csv_param,
    validate_enum_value,
    validate_limit,
    validate_offset,
    validate_path,
    validate_query_string,
)
from src.search.assembler import assemble_response, build_analytics_filters
from src.search.errors import BackendError, ClientInputError, SearchError
from src.search.highlight import highlight_results
from src.search.models import SearchRequest, SortOrder

logger = logging.getLogger(__name__)
search_logger = StructuredLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])

MIN_AUTOCOMPLETE_QUERY_LENGTH = 2
POPULAR_SEARCH_COUNT = 2

SearchRateLimit = Annotated[RateLimitResult, Depends(rate_limited("search"))]
AutocompleteRateLimit = Annotated[RateLimitResult, Depends(rate_limited("autocomplete"))]
PublicRateLimit = Annotated[RateLimitResult, Depends(rate_limited("public"))]


def _response_headers(
    request: Request,
    allowed_origins: list[str],
    cache_preset: str,
    rate_limit: RateLimitResult | None = None,
) -> dict[str, str]:
    headers = {
        **security_headers(),
        **cache_headers(cache_preset),
        **cors_headers(request.headers.get("origin"), allowed_origins),
    }
    if rate_limit is not None:
        headers.update(rate_limit_headers(rate_limit))
    return headers


def _internal_error(request: Request, allowed_origins: list[str]) -> JSONResponse:
    return error_response(
        500,
        {"error": "Internal server error"},
        request.headers.get("origin"),
        allowed_origins,
    )


def _track_search(
    search_type: str, result_count: int, total_time_ms: float, fallback_reason: str
) -> None:
    try:
        app_insights = get_app_insights()
    except RuntimeError:
        return
    app_insights.track_search(
        search_type,
        result_count,
        round(total_time_ms),
        fallback_reason if fallback_reason != "none" else None,
    )


def _check_request(request: Request) -> None:
    for validation in (
        validate_path(request.url.path),
        validate_query_string(request.url.query),
    ):
        if not validation.valid:
            raise ClientInputError(validation.error or "Invalid request")


def _parse_job_enum(value: str | None, allowed: tuple[str, ...], name: str) -> str | None:
    # Unknown values and the "all"/"any" sentinels mean no filter
    parsed = validate_enum_value(value, allowed)
    if value and parsed is None:
        logger.debug(f"Ignoring unrecognized {name} value", extra={name: value})
    return parsed


def build_search_request(
    q: str | None = None,
    categories: str | None = None,
    tags: str | None = None,
    authors: str | None = None,
    entities: str | None = None,
    sort: str | None = None,
    job_category: str | None = None,
    job_employment: str | None = None,
    job_experience: str | None = None,
    job_remote: str | None = None,
    limit: str | None = None,
    offset: str | None = None,
) -> SearchRequest:
    """Turn raw query parameters into a normalized SearchRequest.

    Raises:
        ClientInputError: If limit, offset, sort or entities are malformed.
            Unrecognized job filters are dropped rather than rejected.
    """
    limit_validation = validate_limit(limit, 1, 100, 20)
    if not limit_validation.valid or limit_validation.limit is None:
        raise ClientInputError(limit_validation.error or "Invalid limit parameter")

    offset_validation = validate_offset(offset)
    if not offset_validation.valid or offset_validation.offset is None:
        raise ClientInputError(offset_validation.error or "Invalid offset parameter")

    sort_value = sort or SortOrder.RELEVANCE.value
    if sort_value not in VALID_SORTS:
        raise ClientInputError(
            f"Invalid sort parameter. Must be one of: {', '.join(VALID_SORTS)}"
        )

    entity_list = parse_csv_param(entities)
    if entity_list and any(entity not in VALID_ENTITIES for entity in entity_list):
        raise ClientInputError(
            f"Invalid entities parameter. Must be one of: {', '.join(VALID_ENTITIES)}"
        )

    # Anything other than "true"/"false" leaves the remote filter unset
    _, remote = parse_bool_param(job_remote or None)

    return SearchRequest(
        query=(q or "").strip(),
        categories=parse_csv_param(categories),
        tags=parse_csv_param(tags),
        authors=parse_csv_param(authors),
        entities=entity_list,
        sort=SortOrder(sort_value),
        job_category=_parse_job_enum(job_category, JOB_CATEGORIES, "job_category"),
        job_employment=_parse_job_enum(job_employment, JOB_EMPLOYMENT_TYPES, "job_employment"),
        job_experience=_parse_job_enum(job_experience, EXPERIENCE_LEVELS, "job_experience"),
        job_remote=remote,
        limit=limit_validation.limit,
        offset=offset_validation.offset,
    )


@router.api_route("", methods=["GET", "HEAD"], response_model=SearchResponse)
async def search(
    request: Request,
    orchestrator: OrchestratorDep,
    analytics: AnalyticsDep,
    allowed_origins: CorsOriginsDep,
    rate_limit: SearchRateLimit,
    q: str | None = Query(default=None, description="Free-text query"),
    categories: str | None = Query(default=None, description="Comma-separated content categories"),
    tags: str | None = Query(default=None, description="Comma-separated tags"),
    authors: str | None = Query(default=None, description="Comma-separated authors"),
    entities: str | None = Query(default=None, description="Comma-separated entity kinds"),
    sort: str | None = Query(default=None, description="relevance, popularity, newest or alphabetical"),
    job_category: str | None = Query(default=None),
    job_employment: str | None = Query(default=None),
    job_experience: str | None = Query(default=None),
    job_remote: str | None = Query(default=None, description="'true' or 'false'"),
    limit: str | None = Query(default=None, description="Page size (1-100, default 20)"),
    offset: str | None = Query(default=None, description="Page offset (default 0)"),
):
    """
    Search the directory.

    The search path is chosen from the parameters:
    - **jobs**: any job filter is present (`job_category`, `job_employment`,
      `job_experience`, `job_remote`)
    - **unified**: `entities` is present; searches content, companies, jobs
      and users in one call
    - **content**: everything else; semantic search with transparent
      fallback to keyword search

    Matches in titles, descriptions, authors and tags are returned as
    `*_highlighted` fields wrapped in `<mark>`.
    """
    start_time = time.perf_counter()
    try:
        _check_request(request)
        search_request = build_search_request(
            q=q,
            categories=categories,
            tags=tags,
            authors=authors,
            entities=entities,
            sort=sort,
            job_category=job_category,
            job_employment=job_employment,
            job_experience=job_experience,
            job_remote=job_remote,
            limit=limit,
            offset=offset,
        )

        outcome = await orchestrator.search(search_request)

        results = highlight_results(
            [result.to_dict() for result in outcome.results],
            search_request.query,
        )

        analytics.enqueue(
            search_request.query,
            build_analytics_filters(search_request, outcome.strategy),
            len(results),
            auth_header=request.headers.get("authorization"),
        )

        total_time_ms = (time.perf_counter() - start_time) * 1000
        body = assemble_response(
            search_request,
            outcome.strategy,
            results,
            outcome.total,
            outcome.db_time_ms,
            total_time_ms,
        )

        search_logger.info(
            "Search completed",
            **search_log_context(
                query=search_request.query,
                search_type=outcome.strategy.value,
                filters=body["filters"],
                request_id=getattr(request.state, "request_id", None),
            ),
            result_count=len(results),
            fallback_reason=outcome.fallback_reason.value,
            duration_ms=round(total_time_ms),
        )
        _track_search(
            outcome.strategy.value,
            len(results),
            total_time_ms,
            outcome.fallback_reason.value,
        )

        return JSONResponse(
            content=body,
            headers=_response_headers(request, allowed_origins, "search", rate_limit),
        )
    except BackendError as e:
        logger.error(
            f"Search backend call failed: {e}",
            extra=search_log_context(
                query=q,
                request_id=getattr(request.state, "request_id", None),
            ),
        )
        raise
    except SearchError:
        raise
    except Exception as e:
        logger.error(f"Search failed: {e}", exc_info=True)
        return _internal_error(request, allowed_origins)


@router.api_route("/autocomplete", methods=["GET", "HEAD"], response_model=AutocompleteResponse)
async def autocomplete(
    request: Request,
    backend: SearchBackendDep,
    allowed_origins: CorsOriginsDep,
    rate_limit: AutocompleteRateLimit,
    q: str | None = Query(default=None, description="Partial query (at least 2 characters)"),
    limit: str | None = Query(default=None, description="Number of suggestions (1-20, default 10)"),
):
    """
    Suggest queries from search history.

    Suggestions searched at least twice are flagged as popular.
    """
    start_time = time.perf_counter()
    try:
        _check_request(request)
        query = (q or "").strip()

        limit_validation = validate_limit(limit, 1, 20, 10)
        if not limit_validation.valid or limit_validation.limit is None:
            raise ClientInputError(limit_validation.error or "Invalid limit parameter")

        if len(query) < MIN_AUTOCOMPLETE_QUERY_LENGTH:
            raise ClientInputError(
                f"Query must be at least {MIN_AUTOCOMPLETE_QUERY_LENGTH} characters"
            )

        try:
            rows = await backend.get_search_suggestions(query, limit_validation.limit)
        except SearchError:
            raise
        except Exception as e:
            raise BackendError("get_search_suggestions_from_history", str(e), cause=e) from e

        suggestions = []
        for row in rows:
            count = int(row.get("search_count") or 0)
            suggestions.append(
                Suggestion(
                    text=str(row.get("suggestion") or ""),
                    searchCount=count,
                    isPopular=count >= POPULAR_SEARCH_COUNT,
                )
            )

        total_time_ms = (time.perf_counter() - start_time) * 1000
        search_logger.info(
            "Autocomplete completed",
            **search_log_context(query=query, search_type="autocomplete"),
            suggestion_count=len(suggestions),
            duration_ms=round(total_time_ms),
        )

        headers = _response_headers(request, allowed_origins, "search_autocomplete", rate_limit)
        headers["X-Response-Time"] = f"{round(total_time_ms)}ms"
        return JSONResponse(
            content=AutocompleteResponse(suggestions=suggestions, query=query).model_dump(),
            headers=headers,
        )
    except BackendError as e:
        logger.error(f"Autocomplete backend call failed: {e}")
        raise
    except SearchError:
        raise
    except Exception as e:
        logger.error(f"Autocomplete failed: {e}", exc_info=True)
        return _internal_error(request, allowed_origins)


@router.api_route("/facets", methods=["GET", "HEAD"], response_model=FacetsResponse)
async def facets(
    request: Request,
    backend: SearchBackendDep,
    allowed_origins: CorsOriginsDep,
    rate_limit: PublicRateLimit,
):
    """
    List the filters available to the search UI.

    One facet per content category with its item count, tags and authors.
    """
    start_time = time.perf_counter()
    try:
        try:
            rows = await backend.get_search_facets()
        except SearchError:
            raise
        except Exception as e:
            raise BackendError("get_search_facets", str(e), cause=e) from e

        facet_list = [
            Facet(
                category=str(row.get("category") or ""),
                contentCount=int(row.get("content_count") or 0),
                tags=list(row.get("all_tags") or []),
                authors=list(row.get("authors") or []),
            )
            for row in rows
        ]

        total_time_ms = (time.perf_counter() - start_time) * 1000
        search_logger.info(
            "Facets completed",
            **search_log_context(search_type="facets"),
            facet_count=len(facet_list),
            duration_ms=round(total_time_ms),
        )

        headers = _response_headers(request, allowed_origins, "search_facets", rate_limit)
        headers["X-Response-Time"] = f"{round(total_time_ms)}ms"
        return JSONResponse(
            content=FacetsResponse(facets=facet_list).model_dump(),
            headers=headers,
        )
    except BackendError as e:
        logger.error(f"Facets backend call failed: {e}")
        raise
    except SearchError:
        raise
    except Exception as e:
        logger.error(f"Facets failed: {e}", exc_info=True)
        return _internal_error(request, allowed_origins)


@router.options("")
@router.options("/autocomplete")
@router.options("/facets")
async def preflight(request: Request, allowed_origins: CorsOriginsDep):
    """Answer CORS preflight requests."""
    return Response(
        status_code=204,
        headers=cors_headers(request.headers.get("origin"), allowed_origins),
    )
