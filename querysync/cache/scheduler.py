"""
Fixed-interval refetch timers, one per observed key.
"""
import asyncio
import logging
from typing import Callable, Dict, List

logger = logging.getLogger("cache.scheduler")


class RefetchScheduler:
    """
    Runs tick(key) every interval seconds while a key is armed.

    The query cache arms a key when its first subscriber arrives and
    disarms it when the last one leaves. There is no backoff: a failing
    key is retried at the same interval.
    """

    def __init__(self):
        self._timers: Dict[str, asyncio.Task] = {}
        self._intervals: Dict[str, float] = {}

    def arm(self, key: str, interval: float, tick: Callable[[str], None]) -> None:
        """
        Start the timer for key. A key that is already armed is left alone.

        Args:
            key: Cache key
            interval: Seconds between ticks (must be > 0)
            tick: Synchronous callback that starts a refetch
        """
        if interval <= 0:
            raise ValueError(f"refetch interval must be positive, got {interval}")
        if key in self._timers:
            return

        self._timers[key] = asyncio.get_running_loop().create_task(
            self._loop(key, interval, tick),
            name=f"querysync-refetch:{key}",
        )
        self._intervals[key] = interval
        logger.debug(f"Armed refetch timer for {key} every {interval}s")

    def disarm(self, key: str) -> bool:
        """
        Cancel the timer for key.

        Returns:
            True if a timer was running
        """
        task = self._timers.pop(key, None)
        self._intervals.pop(key, None)
        if task is None:
            return False
        task.cancel()
        logger.debug(f"Disarmed refetch timer for {key}")
        return True

    def disarm_all(self) -> int:
        """Cancel every timer; returns how many were running."""
        keys = list(self._timers)
        for key in keys:
            self.disarm(key)
        return len(keys)

    def is_armed(self, key: str) -> bool:
        return key in self._timers

    def interval(self, key: str) -> float:
        return self._intervals[key]

    @property
    def armed_keys(self) -> List[str]:
        return list(self._timers)

    async def _loop(self, key: str, interval: float, tick: Callable[[str], None]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                tick(key)
            except Exception:
                logger.exception(f"Scheduled refetch for {key} failed to start")
