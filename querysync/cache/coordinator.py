"""
Fetch coordination: freshness checks, in-flight deduplication and
out-of-order protection.

When several consumers ask for the same key while a fetch is running,
they all attach to the one task and share its result.

Every fetch is tagged with a generation number. A completion is only
written to the store if the entry still carries that generation, so a
slow, superseded request can never overwrite newer data.
"""
import asyncio
import itertools
import logging
import time
from typing import Any, Callable, Dict, Optional

from .core import Fetcher, QueryOptions
from .store import CacheStore

logger = logging.getLogger("cache.coordinator")


def _consume_exception(task: asyncio.Task) -> None:
    """Mark a background task's exception as retrieved."""
    if not task.cancelled():
        task.exception()


class FetchCoordinator:
    """
    Decides whether to serve cached data, start a fetch, or join one.

    Usage:
        coordinator = FetchCoordinator(store)
        data = await coordinator.resolve(
            "customer-usage",
            fetch_usage,
            QueryOptions(cache_time=300),
        )
    """

    def __init__(
        self,
        store: CacheStore,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the coordinator.

        Args:
            store: Entry table that receives fetch results
            clock: Monotonic time source in seconds
        """
        self._store = store
        self._clock = clock
        # Monotonic across keys and across clear(), so a recreated entry
        # can never share a tag with a request issued before it existed
        self._generations = itertools.count(1)
        self._stats = {
            "hits": 0,
            "misses": 0,
            "deduplicated": 0,
            "discarded": 0,
            "failures": 0,
        }

    def now(self) -> float:
        return self._clock()

    async def resolve(
        self,
        key: str,
        fetcher: Fetcher,
        options: QueryOptions,
    ) -> Any:
        """
        Return data for key, fetching only when needed.

        Args:
            key: Cache key
            fetcher: Zero-argument coroutine function producing the data
            options: Freshness and gating options

        Returns:
            Cached or freshly fetched data (None if the query is disabled
            and nothing is cached)

        Raises:
            Exception: Any error from the fetcher is propagated
        """
        task = self.fetch(key, fetcher, options)
        if task is None:
            entry = self._store.get(key)
            return entry.data if entry is not None else None
        # Shield: a cancelled caller must not cancel the shared request
        return await asyncio.shield(task)

    def fetch(
        self,
        key: str,
        fetcher: Fetcher,
        options: QueryOptions,
        force: bool = False,
        supersede: bool = False,
    ) -> Optional[asyncio.Task]:
        """
        Start or join a fetch for key without awaiting it.

        Args:
            key: Cache key
            fetcher: Zero-argument coroutine function producing the data
            options: Freshness and gating options
            force: Skip the freshness check
            supersede: Start a new generation even if a fetch is in flight

        Returns:
            The task producing the value, or None when cached data is
            fresh or the query is disabled
        """
        entry = self._store.get(key)

        if not options.enabled:
            if entry is None:
                self._store.set(key)
            return None

        if entry is not None and entry.in_flight is not None and not supersede:
            self._stats["deduplicated"] += 1
            logger.debug(f"Joining in-flight fetch for {key} (generation {entry.generation})")
            return entry.in_flight

        if not force and entry is not None and not entry.is_stale(self.now()):
            self._stats["hits"] += 1
            logger.debug(f"CACHE HIT (fresh): {key} [age={entry.age_seconds(self.now()):.1f}s]")
            return None

        self._stats["misses"] += 1
        return self._start(key, fetcher, options)

    def _start(self, key: str, fetcher: Fetcher, options: QueryOptions) -> asyncio.Task:
        generation = next(self._generations)
        entry = self._store.get(key)
        fetch_count = entry.fetch_count if entry is not None else 0

        if entry is not None and entry.in_flight is not None:
            logger.info(f"Superseding in-flight fetch for {key}")
        else:
            logger.info(f"FETCH: {key} (generation {generation})")

        task = asyncio.get_running_loop().create_task(
            self._run(key, generation, fetcher, options),
            name=f"querysync-fetch:{key}",
        )
        task.add_done_callback(_consume_exception)
        self._store.set(
            key,
            in_flight=task,
            generation=generation,
            fetch_count=fetch_count + 1,
        )
        return task

    def mark_stale(self, key: str) -> bool:
        """
        Mark an entry stale now, keeping its data.

        A fetch that was already in flight is detached: its result may
        predate the change that caused the invalidation, so it is discarded
        when it lands. Callers awaiting it still receive its value.

        Returns:
            True if the entry exists
        """
        entry = self._store.get(key)
        if entry is None:
            return False
        changes: Dict[str, Any] = {"stale_at": self.now()}
        if entry.in_flight is not None:
            changes["in_flight"] = None
            changes["generation"] = next(self._generations)
        self._store.set(key, **changes)
        return True

    def _is_current(self, key: str, generation: int) -> bool:
        entry = self._store.get(key)
        return entry is not None and entry.generation == generation

    async def _run(
        self,
        key: str,
        generation: int,
        fetcher: Fetcher,
        options: QueryOptions,
    ) -> Any:
        try:
            data = await fetcher()
        except asyncio.CancelledError as e:
            # Cancellation still releases the in-flight slot
            if self._is_current(key, generation):
                self._store.set(key, error=e, error_at=self.now(), in_flight=None)
                logger.warning(f"Fetch cancelled for {key}")
            raise
        except Exception as e:
            self._stats["failures"] += 1
            if self._is_current(key, generation):
                # Keep the last good data; only the error slot changes
                self._store.set(key, error=e, error_at=self.now(), in_flight=None)
                logger.warning(f"Fetch failed for {key}: {e!r}")
            else:
                self._stats["discarded"] += 1
                logger.debug(f"Discarding failure of superseded fetch for {key}")
            raise

        if self._is_current(key, generation):
            now = self.now()
            self._store.set(
                key,
                data=data,
                error=None,
                error_at=None,
                fetched_at=now,
                stale_at=now + options.cache_time,
                in_flight=None,
            )
        else:
            self._stats["discarded"] += 1
            logger.debug(f"Discarding result of superseded fetch for {key} (generation {generation})")
        return data

    def get_stats(self) -> Dict[str, int]:
        """Get coordinator statistics."""
        return dict(self._stats)
