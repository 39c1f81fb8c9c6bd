"""
Core cache data structures.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

T = TypeVar("T")

# A fetcher is an opaque zero-argument coroutine function supplied per key.
Fetcher = Callable[[], Awaitable[T]]


class QueryStatus(Enum):
    """Lifecycle status of a cache entry, derived from its fields."""
    IDLE = "idle"         # Never fetched, nothing in flight
    LOADING = "loading"   # First fetch in flight, no data yet
    SUCCESS = "success"   # Data present, last fetch succeeded
    ERROR = "error"       # Last fetch failed (data may still be present)


@dataclass(frozen=True)
class QueryOptions:
    """
    Per-query caching behavior.

    Single-tier freshness: data younger than cache_time is served without
    calling the fetcher, anything older is refetched on next access.
    """
    cache_time: float = 300.0                 # seconds data stays fresh
    refetch_interval: Optional[float] = None  # periodic refetch while subscribed
    enabled: bool = True                      # False gates every fetch
    gc_time: Optional[float] = 300.0          # eviction grace with no subscribers
    refetch_on_mount: bool = True             # fetch stale data when subscribed

    @property
    def polls(self) -> bool:
        """True if a refetch timer should run while the query is observed."""
        return self.enabled and bool(self.refetch_interval) and self.refetch_interval > 0


@dataclass(frozen=True)
class CacheEntry:
    """
    Immutable snapshot of one cached query.

    Every store write produces a new instance, so listeners can compare
    references to detect change.
    """
    key: str
    data: Any = None
    error: Optional[BaseException] = None
    fetched_at: Optional[float] = None
    stale_at: float = 0.0
    error_at: Optional[float] = None
    in_flight: Optional[asyncio.Task] = None
    generation: int = 0
    subscriber_count: int = 0
    fetch_count: int = 0

    @property
    def has_data(self) -> bool:
        """True once any fetch for this key has succeeded."""
        return self.fetched_at is not None

    @property
    def is_fetching(self) -> bool:
        return self.in_flight is not None

    @property
    def status(self) -> QueryStatus:
        if self.is_fetching and not self.has_data:
            return QueryStatus.LOADING
        if self.error is not None:
            return QueryStatus.ERROR
        if self.has_data:
            return QueryStatus.SUCCESS
        return QueryStatus.IDLE

    def is_stale(self, now: float) -> bool:
        """Check if the entry should be refetched on next access."""
        return not self.has_data or now >= self.stale_at

    def age_seconds(self, now: float) -> Optional[float]:
        """Seconds since data was fetched, None if never fetched."""
        if self.fetched_at is None:
            return None
        return now - self.fetched_at

    def to_dict(self, now: float) -> Dict[str, Any]:
        """Diagnostic view of the entry (no payload)."""
        age = self.age_seconds(now)
        return {
            "key": self.key,
            "status": self.status.value,
            "stale": self.is_stale(now),
            "fetching": self.is_fetching,
            "subscribers": self.subscriber_count,
            "fetchCount": self.fetch_count,
            "generation": self.generation,
            "age": round(age, 1) if age is not None else None,
            "error": repr(self.error) if self.error is not None else None,
        }
