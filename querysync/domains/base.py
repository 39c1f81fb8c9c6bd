"""
Shared plumbing for domain data contexts.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..cache import QueryCache, QueryObserver
from ..cache.core import Fetcher, QueryOptions

logger = logging.getLogger("domains")


class DataContext:
    """
    A group of related queries started and stopped together.

    Subclasses register their queries in __init__ with _query(); callers
    start() the context when the screen appears and close() it when the
    screen goes away.
    """

    def __init__(self, cache: QueryCache):
        self._cache = cache
        self._observers: Dict[str, QueryObserver] = {}

    def _query(
        self,
        key: str,
        fetcher: Fetcher,
        options: Optional[QueryOptions] = None,
    ) -> QueryObserver:
        observer = self._cache.query(key, fetcher, options)
        self._observers[key] = observer
        return observer

    @property
    def keys(self) -> List[str]:
        return list(self._observers)

    def start(self) -> "DataContext":
        for observer in self._observers.values():
            observer.start()
        return self

    def close(self) -> None:
        for observer in self._observers.values():
            observer.close()

    async def __aenter__(self) -> "DataContext":
        return self.start()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    async def refresh_all(self) -> List[Any]:
        """
        Refetch every query of the context concurrently.

        Failures are recorded on their entries; the returned list holds
        either the data or the exception for each query, in key order.
        """
        results = await asyncio.gather(
            *(observer.refetch() for observer in self._observers.values()),
            return_exceptions=True,
        )
        failed = [key for key, r in zip(self._observers, results) if isinstance(r, Exception)]
        if failed:
            logger.warning(f"Refresh failed for: {', '.join(failed)}")
        return list(results)

    def invalidate(self) -> int:
        """Mark every query of the context stale."""
        return self._cache.invalidate(self.keys)
