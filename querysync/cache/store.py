"""
Process-wide table of cache entries.

Pure bookkeeping: no fetchers, no timers, no awaits. Every write replaces
the entry with a new immutable snapshot and notifies the key's listeners.
"""
import dataclasses
import logging
from typing import Any, Dict, List, Optional

from .bus import NotificationBus
from .core import CacheEntry

logger = logging.getLogger("cache.store")


class CacheStore:
    """Mapping of cache key to the latest CacheEntry snapshot."""

    def __init__(self, bus: NotificationBus):
        self._bus = bus
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def set(self, key: str, **changes: Any) -> CacheEntry:
        """
        Write fields of an entry, creating it if absent.

        Args:
            key: Cache key
            **changes: CacheEntry fields to replace

        Returns:
            The newly published entry
        """
        current = self._entries.get(key)
        if current is None:
            entry = CacheEntry(key=key, **changes)
            logger.debug(f"Created entry: {key}")
        else:
            entry = dataclasses.replace(current, **changes)
        self._entries[key] = entry
        self._bus.notify(key, entry)
        return entry

    def delete(self, key: str) -> bool:
        """
        Remove an entry.

        Returns:
            True if the entry existed
        """
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        """
        Remove every entry.

        Returns:
            Number of entries removed
        """
        count = len(self._entries)
        self._entries.clear()
        return count

    def keys(self) -> List[str]:
        return list(self._entries)

    def entries(self) -> List[CacheEntry]:
        return list(self._entries.values())

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
