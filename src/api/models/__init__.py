"""API request and response models."""

from .search import (
    AutocompleteResponse,
    ErrorResponse,
    Facet,
    FacetsResponse,
    Pagination,
    Performance,
    SearchResponse,
    Suggestion,
)

__all__ = [
    "AutocompleteResponse",
    "ErrorResponse",
    "Facet",
    "FacetsResponse",
    "Pagination",
    "Performance",
    "SearchResponse",
    "Suggestion",
]
