"""
Query observer: one consumer's live view of a cache key.
"""
from typing import TYPE_CHECKING, Any, Callable, Optional

from .core import CacheEntry, Fetcher, QueryOptions, QueryStatus

if TYPE_CHECKING:
    from .manager import QueryCache


class QueryObserver:
    """
    Subscribes to one key and keeps the latest entry at hand.

    Usage:
        async with cache.query("customer-wallet", fetch_wallet) as wallet:
            ...
            if wallet.loading:
                show_spinner()
            elif wallet.error and wallet.data is not None:
                show_stale(wallet.data, banner=wallet.error)
    """

    def __init__(
        self,
        cache: "QueryCache",
        key: str,
        fetcher: Fetcher,
        options: Optional[QueryOptions] = None,
        on_success: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        on_change: Optional[Callable[[CacheEntry], None]] = None,
    ):
        self._cache = cache
        self.key = key
        self._fetcher = fetcher
        self._options = cache.options_for(key, options)
        self._on_success = on_success
        self._on_error = on_error
        self._on_change = on_change

        self.entry: Optional[CacheEntry] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def start(self) -> "QueryObserver":
        """Subscribe to the key (no-op if already started)."""
        if self._unsubscribe is None:
            self._unsubscribe = self._cache.subscribe(
                self.key, self._handle_entry, self._fetcher, self._options
            )
            # Fresh cached data counts as a successful load
            entry = self.entry
            if (
                self._on_success is not None
                and entry is not None
                and entry.has_data
                and entry.error is None
                and not entry.is_fetching
                and not entry.is_stale(self._cache.now())
            ):
                self._on_success(entry.data)
        return self

    def close(self) -> None:
        """Unsubscribe; an in-flight fetch still completes for others."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    async def __aenter__(self) -> "QueryObserver":
        return self.start()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    # ========================================================================
    # State
    # ========================================================================

    @property
    def data(self) -> Any:
        return self.entry.data if self.entry is not None else None

    @property
    def error(self) -> Optional[BaseException]:
        return self.entry.error if self.entry is not None else None

    @property
    def status(self) -> QueryStatus:
        return self.entry.status if self.entry is not None else QueryStatus.IDLE

    @property
    def loading(self) -> bool:
        """True until the first result (data or error) arrives."""
        entry = self.entry
        if entry is not None and entry.is_fetching:
            return not entry.has_data
        if not self._options.enabled or not self._options.refetch_on_mount:
            return False
        return entry is None or (not entry.has_data and entry.error is None)

    @property
    def is_refetching(self) -> bool:
        """True while a fetch runs on top of already displayed data."""
        entry = self.entry
        return entry is not None and entry.is_fetching and entry.has_data

    async def refetch(self, cancel_refetch: bool = False) -> Any:
        return await self._cache.refetch(
            self.key, self._fetcher, self._options, cancel_refetch=cancel_refetch
        )

    async def result(self) -> Any:
        """Resolve the key through the cache (fresh data is not refetched)."""
        return await self._cache.resolve(self.key, self._fetcher, self._options)

    def _handle_entry(self, entry: CacheEntry) -> None:
        previous = self.entry
        self.entry = entry

        # A fetch finished: in flight before, settled now
        if previous is not None and previous.is_fetching and not entry.is_fetching:
            if entry.error is not None and entry.error_at != previous.error_at:
                if self._on_error is not None:
                    self._on_error(entry.error)
            elif entry.error is None and entry.fetched_at != previous.fetched_at:
                if self._on_success is not None:
                    self._on_success(entry.data)

        if self._on_change is not None:
            self._on_change(entry)
