"""Per-client rate limiting for the search API.

Implements a fixed window counter per (identifier, window) key. Memory is
bounded: the limiter never tracks more than ``max_entries`` keys, purging
expired windows first and then evicting the oldest-resetting 10% of entries
when it is still full.
"""

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass(frozen=True)
class RateLimitConfig:
    """Rate limit budget for one endpoint class."""

    max_requests: int
    window_ms: int
    description: str = ""

    def __post_init__(self):
        if self.max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if self.window_ms <= 0:
            raise ValueError("window_ms must be positive")


RATE_LIMIT_PRESETS: dict[str, RateLimitConfig] = {
    "public": RateLimitConfig(100, 60_000, "Public endpoints - 100 requests per minute"),
    "heavy": RateLimitConfig(30, 60_000, "Heavy endpoints - 30 requests per minute"),
    "search": RateLimitConfig(60, 60_000, "Search API - 60 requests per minute"),
    "autocomplete": RateLimitConfig(120, 60_000, "Autocomplete - 120 requests per minute"),
    "email": RateLimitConfig(5, 60_000, "Email handlers - 5 requests per minute"),
    "admin": RateLimitConfig(10, 60_000, "Admin operations - 10 requests per minute"),
}


@dataclass
class RateLimitRecord:
    """Counter for one (identifier, window) key."""

    count: int
    reset_at: float  # epoch milliseconds


@dataclass
class RateLimitResult:
    """Outcome of a rate limit check."""

    allowed: bool
    remaining: int
    reset_at: float  # epoch seconds
    limit: int
    retry_after: int | None = None


class RateLimitStore(ABC):
    """Backing store for rate limit records.

    The limiter's algorithm only talks to this interface, so an external cache
    can replace the in-memory map without changing the limiter.
    """

    @abstractmethod
    def get(self, key: str) -> RateLimitRecord | None:
        """Return the record for ``key`` or None."""

    @abstractmethod
    def set(self, key: str, record: RateLimitRecord) -> None:
        """Store ``record`` under ``key``."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""

    @abstractmethod
    def items(self) -> Iterator[tuple[str, RateLimitRecord]]:
        """Iterate over a snapshot of stored records."""

    @abstractmethod
    def __len__(self) -> int:
        """Number of tracked keys."""


class InMemoryRateLimitStore(RateLimitStore):
    """Dictionary-backed store for a single process."""

    def __init__(self):
        self._records: dict[str, RateLimitRecord] = {}

    def get(self, key: str) -> RateLimitRecord | None:
        return self._records.get(key)

    def set(self, key: str, record: RateLimitRecord) -> None:
        self._records[key] = record

    def delete(self, key: str) -> None:
        self._records.pop(key, None)

    def items(self) -> Iterator[tuple[str, RateLimitRecord]]:
        return iter(list(self._records.items()))

    def __len__(self) -> int:
        return len(self._records)


class RateLimiter:
    """Fixed window rate limiter with bounded memory.

    A lock guards every read-increment-write and every sweep. The lock is
    never held across an ``await``; ``check`` is synchronous.
    """

    EVICTION_FRACTION = 0.1

    def __init__(
        self,
        store: RateLimitStore | None = None,
        max_entries: int = 10_000,
        cleanup_interval: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the rate limiter.

        Args:
            store: Record store (defaults to an in-memory map)
            max_entries: Hard cap on tracked keys
            cleanup_interval: Minimum seconds between passive sweeps
            clock: Returns the current time in epoch seconds
        """
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.store = store if store is not None else InMemoryRateLimitStore()
        self.max_entries = max_entries
        self.cleanup_interval_ms = cleanup_interval * 1000
        self._clock = clock
        self._lock = threading.Lock()
        self._last_cleanup = self._now_ms()

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def check(self, identifier: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one request for ``identifier`` and decide whether to allow it.

        Args:
            identifier: Client identifier (see resolve_client_identifier)
            config: Budget to apply

        Returns:
            RateLimitResult; denied results carry ``retry_after`` in seconds
        """
        now = self._now_ms()
        key = f"{identifier}:{config.window_ms}"

        with self._lock:
            self._maybe_sweep(now)

            record = self.store.get(key)
            if record is None or record.reset_at <= now:
                if record is None:
                    self._ensure_capacity(now)
                record = RateLimitRecord(count=1, reset_at=now + config.window_ms)
                self.store.set(key, record)
                return RateLimitResult(
                    allowed=True,
                    remaining=config.max_requests - 1,
                    reset_at=record.reset_at / 1000,
                    limit=config.max_requests,
                )

            if record.count >= config.max_requests:
                retry_after = max(1, math.ceil((record.reset_at - now) / 1000))
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_at=record.reset_at / 1000,
                    limit=config.max_requests,
                    retry_after=retry_after,
                )

            record.count += 1
            self.store.set(key, record)
            return RateLimitResult(
                allowed=True,
                remaining=max(config.max_requests - record.count, 0),
                reset_at=record.reset_at / 1000,
                limit=config.max_requests,
            )

    def _purge_expired(self, now: float) -> int:
        expired = [key for key, record in self.store.items() if record.reset_at <= now]
        for key in expired:
            self.store.delete(key)
        return len(expired)

    def _maybe_sweep(self, now: float) -> None:
        # Passive sweep, at most once per interval
        if now - self._last_cleanup < self.cleanup_interval_ms:
            return
        removed = self._purge_expired(now)
        self._last_cleanup = now
        if removed:
            logger.debug(f"Rate limiter sweep removed {removed} expired windows")

    def _ensure_capacity(self, now: float) -> None:
        if len(self.store) < self.max_entries:
            return

        self._purge_expired(now)
        self._last_cleanup = now
        if len(self.store) < self.max_entries:
            return

        # Still full: drop the oldest-resetting slice
        entries = sorted(self.store.items(), key=lambda item: item[1].reset_at)
        evict_count = max(1, int(len(entries) * self.EVICTION_FRACTION))
        for key, _ in entries[:evict_count]:
            self.store.delete(key)
        logger.warning(
            f"Rate limiter at capacity ({self.max_entries} keys), evicted {evict_count} entries"
        )

    def __len__(self) -> int:
        return len(self.store)


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    return value


def resolve_client_identifier(headers: Mapping[str, str], override: str | None = None) -> str:
    """Pick the identifier used to bucket a request.

    Prefers an explicit override, then the first address in X-Forwarded-For,
    then X-Real-IP. Requests with neither share the ``unknown`` bucket.
    """
    if override:
        return override

    forwarded_for = _header(headers, "X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = _header(headers, "X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return UNKNOWN_CLIENT


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Build X-RateLimit-* headers (and Retry-After when denied)."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(math.ceil(result.reset_at))),
    }
    if not result.allowed and result.retry_after is not None:
        headers["Retry-After"] = str(result.retry_after)
    return headers
