"""
Main cache orchestration: subscriptions, scheduled refetch, invalidation
and eviction on top of the store and fetch coordinator.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Union

from .bus import Listener, NotificationBus
from .coordinator import FetchCoordinator
from .core import CacheEntry, Fetcher, QueryOptions
from .observer import QueryObserver
from .scheduler import RefetchScheduler
from .store import CacheStore
from .ttl_policies import get_options_for_key

logger = logging.getLogger("cache.manager")


@dataclass
class _QueryConfig:
    """Fetcher and options registered for a key by its consumers."""
    fetcher: Fetcher
    options: QueryOptions


class QueryCache:
    """
    Keyed read-through cache with:
    - Fresh-data serving and in-flight request deduplication
    - Push notifications to subscribers on every entry change
    - Fixed-interval refetch while a key has subscribers
    - Invalidation that refetches observed keys in the background
    - Eviction of unobserved entries after a grace period

    Build one per application (or per test) with create_cache().
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the query cache.

        Args:
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self._bus = NotificationBus()
        self._store = CacheStore(self._bus)
        self._coordinator = FetchCoordinator(self._store, clock)
        self._scheduler = RefetchScheduler()

        self._queries: Dict[str, _QueryConfig] = {}
        self._evictions: Dict[str, asyncio.TimerHandle] = {}
        # Bumped by clear(); unsubscribe handles from before a clear are inert
        self._epoch = 0

        self._stats = {
            "invalidations": 0,
            "evictions": 0,
            "clears": 0,
        }

    # ========================================================================
    # Reads
    # ========================================================================

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def scheduler(self) -> RefetchScheduler:
        return self._scheduler

    def now(self) -> float:
        return self._coordinator.now()

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        return self._store.get(key)

    def get_data(self, key: str) -> Any:
        """Cached data for key, None if absent."""
        entry = self._store.get(key)
        return entry.data if entry is not None else None

    def options_for(self, key: str, options: Optional[QueryOptions] = None) -> QueryOptions:
        """Explicit options, else the key's registered options, else key defaults."""
        if options is not None:
            return options
        config = self._queries.get(key)
        if config is not None:
            return config.options
        return get_options_for_key(key)

    async def resolve(
        self,
        key: str,
        fetcher: Fetcher,
        options: Optional[QueryOptions] = None,
    ) -> Any:
        """
        Get data from cache or fetch it.

        Args:
            key: Cache key
            fetcher: Zero-argument coroutine function producing the data
            options: Query options (defaults derived from the key)

        Returns:
            Cached or fetched data

        Raises:
            Exception: Any error from the fetcher is propagated
        """
        opts = self.options_for(key, options)
        if key not in self._queries:
            self._queries[key] = _QueryConfig(fetcher, opts)
        return await self._coordinator.resolve(key, fetcher, opts)

    async def refetch(
        self,
        key: str,
        fetcher: Optional[Fetcher] = None,
        options: Optional[QueryOptions] = None,
        cancel_refetch: bool = False,
    ) -> Any:
        """
        Fetch key regardless of freshness.

        Still joins a fetch that is already in flight unless cancel_refetch
        is set, in which case a new request supersedes it.

        Args:
            key: Cache key
            fetcher: Fetcher to use (defaults to the registered one)
            options: Query options
            cancel_refetch: Supersede an in-flight fetch

        Raises:
            KeyError: If no fetcher is given or registered for key
            Exception: Any error from the fetcher is propagated
        """
        config = self._queries.get(key)
        if fetcher is None:
            if config is None:
                raise KeyError(f"No fetcher registered for {key}")
            fetcher = config.fetcher
        opts = self.options_for(key, options)

        logger.info(f"REFETCH: {key}")
        task = self._coordinator.fetch(key, fetcher, opts, force=True, supersede=cancel_refetch)
        if task is None:
            return self.get_data(key)
        return await asyncio.shield(task)

    def set_data(self, key: str, data: Any, options: Optional[QueryOptions] = None) -> CacheEntry:
        """
        Write data for key directly, as if it had just been fetched.

        Used for optimistic updates after a local edit.
        """
        opts = self.options_for(key, options)
        now = self.now()
        return self._store.set(
            key,
            data=data,
            error=None,
            error_at=None,
            fetched_at=now,
            stale_at=now + opts.cache_time,
        )

    # ========================================================================
    # Subscriptions
    # ========================================================================

    def subscribe(
        self,
        key: str,
        listener: Listener,
        fetcher: Optional[Fetcher] = None,
        options: Optional[QueryOptions] = None,
    ) -> Callable[[], None]:
        """
        Observe a key.

        The listener is called right away with the current entry and then
        on every change. If a fetcher is known for the key, the entry is
        absent or stale and refetch_on_mount is set, a background fetch
        starts. Fetch errors are delivered through the entry, never raised
        from here.

        Args:
            key: Cache key
            listener: Called with each new CacheEntry
            fetcher: Fetcher to register for the key (latest wins)
            options: Query options to register with the fetcher

        Returns:
            Idempotent unsubscribe function
        """
        opts = self.options_for(key, options)
        if fetcher is not None:
            self._queries[key] = _QueryConfig(fetcher, opts)

        remove_listener = self._bus.subscribe(key, listener)
        self._cancel_eviction(key)

        entry = self._store.get(key)
        count = (entry.subscriber_count if entry is not None else 0) + 1
        self._store.set(key, subscriber_count=count)

        config = self._queries.get(key)
        active = config.options if config is not None else opts
        # Armed while observed and polling; arm() skips keys already running
        if active.polls:
            self._scheduler.arm(key, active.refetch_interval, self._tick)

        if config is not None and config.options.refetch_on_mount:
            self._coordinator.fetch(key, config.fetcher, config.options)

        epoch = self._epoch
        unsubscribed = False

        def unsubscribe() -> None:
            nonlocal unsubscribed
            if unsubscribed:
                return
            unsubscribed = True
            remove_listener()
            if epoch != self._epoch:
                return
            self._release(key, opts)

        return unsubscribe

    def query(
        self,
        key: str,
        fetcher: Fetcher,
        options: Optional[QueryOptions] = None,
        **callbacks: Any,
    ) -> QueryObserver:
        """
        Create an observer for a key (not yet started).

        Args:
            key: Cache key
            fetcher: Zero-argument coroutine function producing the data
            options: Query options
            **callbacks: on_success, on_error, on_change

        Returns:
            QueryObserver; call start() or use it as an async context manager
        """
        return QueryObserver(self, key, fetcher, options, **callbacks)

    def _release(self, key: str, options: QueryOptions) -> None:
        entry = self._store.get(key)
        if entry is None:
            return
        count = max(0, entry.subscriber_count - 1)
        self._store.set(key, subscriber_count=count)
        if count == 0:
            self._scheduler.disarm(key)
            self._schedule_eviction(key, options.gc_time)

    def _tick(self, key: str) -> None:
        config = self._queries.get(key)
        if config is None or not config.options.enabled:
            return
        logger.debug(f"Scheduled refetch: {key}")
        self._coordinator.fetch(key, config.fetcher, config.options, force=True)

    # ========================================================================
    # Eviction
    # ========================================================================

    def _schedule_eviction(self, key: str, gc_time: Optional[float]) -> None:
        if gc_time is None:
            return
        self._cancel_eviction(key)
        loop = asyncio.get_running_loop()
        self._evictions[key] = loop.call_later(gc_time, self._evict, key, gc_time)

    def _cancel_eviction(self, key: str) -> None:
        handle = self._evictions.pop(key, None)
        if handle is not None:
            handle.cancel()

    def _evict(self, key: str, gc_time: float) -> None:
        self._evictions.pop(key, None)
        entry = self._store.get(key)
        if entry is None or entry.subscriber_count > 0:
            return
        if entry.in_flight is not None:
            # Let the running request land first
            self._schedule_eviction(key, gc_time)
            return
        self._store.delete(key)
        self._queries.pop(key, None)
        self._stats["evictions"] += 1
        logger.debug(f"Evicted unobserved entry: {key}")

    # ========================================================================
    # Invalidation
    # ========================================================================

    def invalidate(self, keys: Union[str, Iterable[str]]) -> int:
        """
        Mark one or more keys stale.

        Data is kept for display. Observed keys are refetched right away;
        the rest are refetched on their next subscribe or resolve.

        Args:
            keys: A cache key or an iterable of keys

        Returns:
            Number of existing entries marked stale
        """
        if isinstance(keys, str):
            keys = [keys]

        count = 0
        for key in keys:
            if not self._coordinator.mark_stale(key):
                continue
            count += 1
            self._stats["invalidations"] += 1

            entry = self._store.get(key)
            config = self._queries.get(key)
            if entry.subscriber_count > 0 and config is not None and config.options.enabled:
                logger.info(f"Invalidated {key}, refetching for {entry.subscriber_count} subscriber(s)")
                self._coordinator.fetch(key, config.fetcher, config.options, force=True)
            else:
                logger.info(f"Invalidated {key}, refetch deferred")
        return count

    def invalidate_matching(self, pattern: str) -> int:
        """
        Invalidate all keys containing a substring.

        Args:
            pattern: Substring to match in cache keys

        Returns:
            Number of entries invalidated
        """
        keys = [k for k in self._store.keys() if pattern in k]
        count = self.invalidate(keys)
        if count:
            logger.info(f"Invalidated {count} entries matching '{pattern}'")
        return count

    def clear(self) -> int:
        """
        Reset the whole cache (logout, tenant switch).

        Drops data, listeners and registered fetchers and cancels every
        timer. Fetches still in flight complete but their results are
        discarded.

        Returns:
            Number of entries cleared
        """
        self._scheduler.disarm_all()
        for handle in self._evictions.values():
            handle.cancel()
        self._evictions.clear()
        self._queries.clear()
        self._bus.clear()
        self._epoch += 1
        count = self._store.clear()
        self._stats["clears"] += 1
        logger.info(f"Cleared {count} cache entries")
        return count

    invalidate_all = clear

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        coordinator = self._coordinator.get_stats()
        total = coordinator["hits"] + coordinator["misses"]
        hit_rate = (coordinator["hits"] / total * 100) if total > 0 else 0
        return {
            "entries": len(self._store),
            **coordinator,
            **self._stats,
            "hit_rate_percent": round(hit_rate, 1),
            "active_timers": len(self._scheduler.armed_keys),
            "pending_evictions": len(self._evictions),
        }


def create_cache(clock: Optional[Callable[[], float]] = None) -> QueryCache:
    """Create an isolated query cache."""
    if clock is None:
        return QueryCache()
    return QueryCache(clock=clock)
