"""Exception taxonomy for the search service.

Each exception maps to one HTTP outcome in the API layer:

- ClientInputError: malformed or oversized input (400, never retried)
- RateLimitError: client exceeded its request budget (429 with retry hint)
- BackendError: the selected strategy's remote procedure failed (502)
- DegradedPathError: embedding or semantic search failed; never surfaced,
  the orchestrator downgrades to keyword search
"""


class SearchError(Exception):
    """Base class for search service errors."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientInputError(SearchError):
    """Raised when request parameters fail validation."""

    status_code = 400


class RateLimitError(SearchError):
    """Raised when a client exceeds its rate limit."""

    status_code = 429

    def __init__(
        self,
        message: str = "Too many requests",
        retry_after: int = 1,
        headers: dict[str, str] | None = None,
    ):
        super().__init__(message)
        self.retry_after = retry_after
        self.headers = headers or {}


class BackendError(SearchError):
    """Raised when a terminal backend remote procedure fails.

    Attributes:
        rpc: Name of the remote procedure that failed
        cause: The underlying exception, if any
    """

    status_code = 502

    def __init__(self, rpc: str, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.rpc = rpc
        self.cause = cause

    def __str__(self) -> str:
        return f"{self.rpc}: {self.message}"


class DegradedPathError(SearchError):
    """Raised inside the semantic pipeline to trigger keyword fallback."""

    def __init__(self, reason, message: str):
        super().__init__(message)
        self.reason = reason
