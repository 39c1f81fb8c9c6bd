"""
Per-key change notification.

Listeners are called synchronously, in registration order, in the same
turn as the store write that triggered them. Any batching belongs to the
consumer.
"""
import logging
from typing import Callable, Dict, List

from .core import CacheEntry

logger = logging.getLogger("cache.bus")

Listener = Callable[[CacheEntry], None]


class NotificationBus:
    """Tracks listeners per cache key and fans out entry updates."""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}

    def subscribe(self, key: str, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for a key.

        Returns:
            An idempotent function that removes the listener again
        """
        # Wrap so the same callable can be registered twice and removed once
        token = _Registration(listener)
        self._listeners.setdefault(key, []).append(token)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key)
            if not listeners or token not in listeners:
                return
            listeners.remove(token)
            if not listeners:
                del self._listeners[key]

        return unsubscribe

    def notify(self, key: str, entry: CacheEntry) -> None:
        """Call every listener for key with the new entry."""
        # Copy: listeners may unsubscribe while being notified
        for listener in list(self._listeners.get(key, ())):
            try:
                listener(entry)
            except Exception:
                logger.exception(f"Listener for {key} raised")

    def listener_count(self, key: str) -> int:
        return len(self._listeners.get(key, ()))

    def clear(self) -> None:
        """Drop every listener for every key."""
        self._listeners.clear()


class _Registration:
    """Identity wrapper around a listener."""

    __slots__ = ("listener",)

    def __init__(self, listener: Listener):
        self.listener = listener

    def __call__(self, entry: CacheEntry) -> None:
        self.listener(entry)
