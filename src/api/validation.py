"""Input validation for search request parameters.

All validators are pure and never raise; they return a result object (or a
parsed value) and leave the HTTP mapping to the caller.
"""

import re
from dataclasses import dataclass
from urllib.parse import unquote_plus

MAX_QUERY_STRING_LENGTH = 2048
MAX_PATH_SEGMENT_LENGTH = 255
MAX_ROUTE_LENGTH = 2048

VALID_SORTS = ("relevance", "popularity", "newest", "alphabetical")
VALID_ENTITIES = ("content", "company", "job", "user")

CONTENT_CATEGORIES = (
    "agents",
    "mcp",
    "rules",
    "commands",
    "hooks",
    "statuslines",
    "skills",
    "collections",
    "guides",
    "jobs",
    "changelog",
)

JOB_CATEGORIES = (
    "engineering",
    "design",
    "product",
    "marketing",
    "sales",
    "support",
    "research",
    "data",
    "operations",
    "leadership",
    "consulting",
    "education",
    "other",
)

JOB_EMPLOYMENT_TYPES = ("full-time", "part-time", "contract", "freelance", "internship")

EXPERIENCE_LEVELS = ("beginner", "intermediate", "advanced")

_FORBIDDEN_QUERY_CHARS = re.compile(r"[<>]")
_FORBIDDEN_PATH_CHARS = re.compile(r"[<>\"']")


@dataclass
class ValidationResult:
    """Outcome of a validation check."""

    valid: bool
    error: str | None = None


@dataclass
class LimitValidation:
    """Outcome of limit parsing."""

    valid: bool
    limit: int | None = None
    error: str | None = None


@dataclass
class OffsetValidation:
    """Outcome of offset parsing."""

    valid: bool
    offset: int | None = None
    error: str | None = None


def validate_query_string(raw_query: str | None) -> ValidationResult:
    """Check the raw query string length and its decoded text for markup."""
    if not raw_query:
        return ValidationResult(valid=True)
    if len(raw_query) > MAX_QUERY_STRING_LENGTH:
        return ValidationResult(
            valid=False,
            error=f"Query string too long (max {MAX_QUERY_STRING_LENGTH} characters)",
        )
    if _FORBIDDEN_QUERY_CHARS.search(unquote_plus(raw_query)):
        return ValidationResult(valid=False, error="Query string contains invalid characters")
    return ValidationResult(valid=True)


def validate_path(path: str) -> ValidationResult:
    """Reject path traversal, doubled slashes, quotes and oversized segments."""
    if ".." in path:
        return ValidationResult(valid=False, error="Path traversal is not allowed")
    if "//" in path:
        return ValidationResult(valid=False, error="Path contains empty segments")
    if _FORBIDDEN_PATH_CHARS.search(path):
        return ValidationResult(valid=False, error="Path contains invalid characters")
    for segment in path.split("/"):
        if len(segment) > MAX_PATH_SEGMENT_LENGTH:
            return ValidationResult(
                valid=False,
                error=f"Path segment too long (max {MAX_PATH_SEGMENT_LENGTH} characters)",
            )
    return ValidationResult(valid=True)


def validate_limit(
    value: str | None,
    min_value: int,
    max_value: int,
    default: int,
) -> LimitValidation:
    """Parse a limit parameter.

    An absent value yields the default. Non-numeric or out-of-range values are
    rejected with a message naming the accepted range.
    """
    if value is None or value == "":
        return LimitValidation(valid=True, limit=default)

    try:
        parsed = int(value.strip())
    except ValueError:
        return LimitValidation(
            valid=False,
            error=f"Invalid limit parameter. Must be an integer between {min_value} and {max_value}",
        )

    if parsed < min_value or parsed > max_value:
        return LimitValidation(
            valid=False,
            error=f"Invalid limit parameter. Must be between {min_value} and {max_value}",
        )

    return LimitValidation(valid=True, limit=parsed)


def validate_offset(value: str | None) -> OffsetValidation:
    """Parse a non-negative offset; absent means 0."""
    if value is None or value == "":
        return OffsetValidation(valid=True, offset=0)
    try:
        parsed = int(value.strip())
    except ValueError:
        return OffsetValidation(valid=False, error="Invalid offset parameter")
    if parsed < 0:
        return OffsetValidation(valid=False, error="Invalid offset parameter")
    return OffsetValidation(valid=True, offset=parsed)


def parse_csv_param(value: str | None) -> list[str] | None:
    """Split a comma-separated parameter, dropping blanks. Empty → None."""
    if not value:
        return None
    parts = [part.strip() for part in value.split(",")]
    parts = [part for part in parts if part]
    return parts or None


def parse_bool_param(value: str | None) -> tuple[bool, bool | None]:
    """Parse ``"true"``/``"false"``.

    Returns:
        Tuple of (valid, parsed value). Absent parameters are valid and None.
    """
    if value is None:
        return True, None
    if value == "true":
        return True, True
    if value == "false":
        return True, False
    return False, None


def validate_enum_value(value: str | None, allowed: tuple[str, ...]) -> str | None:
    """Return the value if it is one of ``allowed``, otherwise None."""
    if not value:
        return None
    return value if value in allowed else None


def sanitize_route(route: str, max_length: int = MAX_ROUTE_LENGTH) -> str:
    """Best-effort route normalizer.

    Strips NUL bytes, collapses ``..`` sequences and repeated slashes, forces
    a leading slash and truncates. Not a security boundary by itself.
    """
    cleaned = route.replace("\x00", "")
    while ".." in cleaned:
        cleaned = cleaned.replace("..", "")
    cleaned = re.sub(r"/{2,}", "/", cleaned)
    if not cleaned.startswith("/"):
        cleaned = "/" + cleaned
    return cleaned[:max_length]
