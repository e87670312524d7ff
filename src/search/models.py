"""Data models for search requests and results.

Backend procedures return rows in different shapes depending on the strategy.
Each shape has its own row class (ContentRow, SemanticRow, UnifiedRow, JobRow)
that projects into the canonical SearchResult right after the backend call, so
highlighting and response assembly never branch on strategy.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SearchStrategy(str, Enum):
    """Backend search path chosen for a request."""

    CONTENT = "content"
    UNIFIED = "unified"
    JOBS = "jobs"


class SortOrder(str, Enum):
    """Sort keys accepted by keyword search."""

    RELEVANCE = "relevance"
    POPULARITY = "popularity"
    NEWEST = "newest"
    ALPHABETICAL = "alphabetical"


class FallbackReason(str, Enum):
    """Why the content strategy ended up on keyword search."""

    NONE = "none"
    EMPTY_QUERY = "empty_query"
    SEMANTIC_DISABLED = "semantic_disabled"
    EMBEDDING_FAILED = "embedding_failed"
    EMBEDDING_TIMEOUT = "embedding_timeout"
    SEMANTIC_ERROR = "semantic_error"
    SEMANTIC_TIMEOUT = "semantic_timeout"
    SEMANTIC_EMPTY = "semantic_empty"


DEFAULT_ENTITIES: tuple[str, ...] = ("content", "company", "job", "user")


@dataclass
class SearchRequest:
    """Normalized search parameters."""

    query: str = ""
    categories: list[str] | None = None
    tags: list[str] | None = None
    authors: list[str] | None = None
    entities: list[str] | None = None
    sort: SortOrder = SortOrder.RELEVANCE
    job_category: str | None = None
    job_employment: str | None = None
    job_experience: str | None = None
    job_remote: bool | None = None
    limit: int = 20
    offset: int = 0

    @property
    def has_job_filters(self) -> bool:
        """True when any job filter was supplied."""
        return (
            self.job_category is not None
            or self.job_employment is not None
            or self.job_experience is not None
            or self.job_remote is not None
        )


@dataclass
class SearchResult:
    """Canonical search hit shared by all strategies."""

    id: str
    title: str | None = None
    description: str | None = None
    category: str | None = None
    slug: str | None = None
    author: str | None = None
    tags: list[str] | None = None
    created_at: str | None = None
    relevance_score: float | None = None
    source: str | None = None
    entity_type: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Flatten into the wire representation."""
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "slug": self.slug,
            "author": self.author,
            "tags": list(self.tags) if self.tags is not None else None,
            "created_at": self.created_at,
            "relevance_score": self.relevance_score,
        }
        if self.source is not None:
            data["source"] = self.source
        if self.entity_type is not None:
            data["entity_type"] = self.entity_type
        for key, value in self.extra.items():
            data.setdefault(key, value)
        return data

    def __str__(self) -> str:
        score = f"{self.relevance_score:.3f}" if self.relevance_score is not None else "n/a"
        return f"SearchResult(id={self.id}, score={score}, title={self.title!r})"


def _string_list(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return [item for item in value if isinstance(item, str)]


def _number(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class ContentRow:
    """Row returned by the keyword search procedure."""

    raw: dict[str, Any]

    def to_result(self) -> SearchResult:
        row = self.raw
        return SearchResult(
            id=str(row.get("id", "")),
            title=row.get("title"),
            description=row.get("description"),
            category=row.get("category"),
            slug=row.get("slug"),
            author=row.get("author"),
            tags=_string_list(row.get("tags")),
            created_at=row.get("created_at"),
            relevance_score=_number(row.get("relevance_score")),
            source=row.get("source") or "keyword_search",
            extra={
                "author_profile_url": row.get("author_profile_url"),
                "updated_at": row.get("updated_at"),
                "combined_score": _number(row.get("combined_score")),
                "view_count": row.get("view_count", row.get("viewCount")),
                "copy_count": row.get("copy_count", row.get("copyCount")),
                "bookmark_count": row.get("bookmark_count"),
            },
        )


@dataclass
class SemanticRow:
    """Row returned by the embedding similarity procedure.

    The similarity index carries fewer columns than keyword search; missing
    engagement counts are reported as None.
    """

    raw: dict[str, Any]

    def to_result(self) -> SearchResult:
        row = self.raw
        similarity = _number(row.get("similarity"))
        return SearchResult(
            id=str(row.get("content_id") or row.get("id") or ""),
            title=row.get("title"),
            description=row.get("description"),
            category=row.get("category"),
            slug=row.get("slug"),
            author=row.get("author"),
            tags=_string_list(row.get("tags")),
            created_at=row.get("created_at"),
            relevance_score=similarity,
            source="semantic_search",
            extra={
                "author_profile_url": row.get("author_profile_url"),
                "updated_at": row.get("updated_at"),
                "combined_score": similarity,
                "view_count": row.get("view_count"),
                "copy_count": row.get("copy_count"),
                "bookmark_count": row.get("bookmark_count"),
            },
        )


@dataclass
class UnifiedRow:
    """Row returned by the federated search procedure."""

    raw: dict[str, Any]

    def to_result(self) -> SearchResult:
        row = self.raw
        return SearchResult(
            id=str(row.get("id", "")),
            title=row.get("title"),
            description=row.get("description"),
            category=row.get("category"),
            slug=row.get("slug"),
            author=row.get("author"),
            tags=_string_list(row.get("tags")),
            created_at=row.get("created_at"),
            relevance_score=_number(row.get("relevance_score")),
            entity_type=row.get("entity_type"),
            extra={"engagement_score": _number(row.get("engagement_score"))},
        )


JOB_METADATA_FIELDS = (
    "company",
    "company_logo",
    "location",
    "type",
    "experience",
    "remote",
    "workplace",
    "salary",
    "link",
    "featured",
    "posted_at",
    "expires_at",
    "view_count",
)


@dataclass
class JobRow:
    """Row returned by the job filter procedure."""

    raw: dict[str, Any]

    def to_result(self) -> SearchResult:
        row = self.raw
        return SearchResult(
            id=str(row.get("id", "")),
            title=row.get("title"),
            description=row.get("description"),
            category=row.get("category"),
            slug=row.get("slug"),
            tags=_string_list(row.get("tags")),
            created_at=row.get("created_at"),
            entity_type="job",
            extra={name: row.get(name) for name in JOB_METADATA_FIELDS},
        )


@dataclass
class SearchOutcome:
    """Normalized output of one orchestrated search."""

    results: list[SearchResult] = field(default_factory=list)
    strategy: SearchStrategy = SearchStrategy.CONTENT
    total: int | None = None
    db_time_ms: float = 0.0
    fallback_reason: FallbackReason = FallbackReason.NONE

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    def __str__(self) -> str:
        return (
            f"SearchOutcome(strategy={self.strategy.value}, count={len(self.results)}, "
            f"total={self.total}, fallback={self.fallback_reason.value})"
        )
