"""Search API response models."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class Pagination(BaseModel):
    """Pagination block of a search response."""

    total: int = Field(..., description="Total matches (authoritative for job searches, page size otherwise)")
    limit: int = Field(..., ge=1, le=100, description="Page size")
    offset: int = Field(..., ge=0, description="Page offset")
    hasMore: bool = Field(..., description="Whether another page is likely available")


class Performance(BaseModel):
    """Timing block of a search response, in milliseconds."""

    dbTime: int = Field(..., description="Backend call duration")
    totalTime: int = Field(..., description="Full handler duration")


class SearchResponse(BaseModel):
    """Search response model."""

    results: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Results with optional *_highlighted fields",
    )
    query: str = Field(..., description="Trimmed query echoed back")
    filters: dict[str, Any] = Field(default_factory=dict, description="Filters applied to this search")
    pagination: Pagination
    performance: Performance
    searchType: Literal["content", "unified"] = Field(..., description="Search path that served the request")


class Suggestion(BaseModel):
    """Autocomplete suggestion drawn from search history."""

    text: str
    searchCount: int
    isPopular: bool


class AutocompleteResponse(BaseModel):
    """Autocomplete response model."""

    suggestions: list[Suggestion] = Field(default_factory=list)
    query: str


class Facet(BaseModel):
    """Per-category facet summary."""

    category: str
    contentCount: int
    tags: list[str] = Field(default_factory=list)
    authors: list[str] = Field(default_factory=list)


class FacetsResponse(BaseModel):
    """Facets response model."""

    facets: list[Facet] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    error: str
    rpc: str | None = None
    retryAfter: int | None = None
