"""
Pricing store: the service price list shared by every page.

Pricing changes rarely, so it is kept locally for an hour and edited in
place after admin writes instead of waiting for a refetch.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

from config.settings import settings

from ..api_client import ApiClient
from ..schemas import ServicePricing

logger = logging.getLogger("domains.pricing")

PricingLoader = Callable[[], Awaitable[Iterable[Union[ServicePricing, Mapping[str, Any]]]]]

DEFAULT_CATEGORY = "Other"


def pricing_loader(client: ApiClient) -> PricingLoader:
    """Loader for GET /admin/pricing, whose data is {"pricing": [...]}."""
    return client.fetcher("/admin/pricing", extract=lambda data: data.get("pricing", []))


class PricingStore:
    """
    Local TTL cache of ServicePricing rows with optimistic edit helpers.

    Usage:
        store = PricingStore(pricing_loader(client))
        await store.fetch_pricing()          # network at most once per hour
        store.update_pricing("sms", {"price_kobo": 450})
        store.get_by_category()
    """

    def __init__(
        self,
        loader: PricingLoader,
        ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the store.

        Args:
            loader: Coroutine function returning pricing rows
            ttl: Seconds a successful fetch stays valid
            clock: Monotonic time source in seconds
        """
        self._loader = loader
        self.ttl = ttl if ttl is not None else settings.pricing_cache_seconds
        self._clock = clock

        self.pricing: List[ServicePricing] = []
        self.loading = False
        self.error: Optional[str] = None
        self.last_fetched: Optional[float] = None

        self._in_flight: Optional[asyncio.Task] = None
        self._listeners: List[Callable[["PricingStore"], None]] = []

    # ========================================================================
    # Change notification
    # ========================================================================

    def subscribe(self, listener: Callable[["PricingStore"], None]) -> Callable[[], None]:
        """Call listener after every state change; returns unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, **changes: Any) -> None:
        for name, value in changes.items():
            setattr(self, name, value)
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Pricing listener raised")

    # ========================================================================
    # Fetching
    # ========================================================================

    @property
    def cache_age(self) -> Optional[float]:
        if self.last_fetched is None:
            return None
        return self._clock() - self.last_fetched

    @property
    def is_fresh(self) -> bool:
        age = self.cache_age
        return age is not None and age < self.ttl

    async def fetch_pricing(self, force: bool = False) -> None:
        """
        Load pricing from the API unless the cached list is still valid.

        Failures are recorded in .error; the previous list is kept.

        Args:
            force: Refetch even if the cache is valid
        """
        if not force and self.is_fresh:
            logger.debug(f"Using cached pricing (cache age: {round(self.cache_age)}s)")
            return

        if self._in_flight is None:
            self._in_flight = asyncio.get_running_loop().create_task(self._load())
            self._in_flight.add_done_callback(self._clear_in_flight)
        await asyncio.shield(self._in_flight)

    def _clear_in_flight(self, task: asyncio.Task) -> None:
        if self._in_flight is task:
            self._in_flight = None

    async def _load(self) -> None:
        self._set(loading=True, error=None)
        try:
            rows = await self._loader()
            pricing = [
                row if isinstance(row, ServicePricing) else ServicePricing.model_validate(row)
                for row in rows
            ]
        except Exception as e:
            logger.error(f"Failed to fetch pricing: {e!r}")
            self._set(loading=False, error=str(e) or type(e).__name__)
            return

        self._set(pricing=pricing, loading=False, error=None, last_fetched=self._clock())
        logger.info(f"Fetched {len(pricing)} pricing entries")

    async def refresh_pricing(self) -> None:
        """Force a refetch, bypassing the TTL."""
        logger.info("Force refreshing pricing data")
        await self.fetch_pricing(force=True)

    def clear_cache(self) -> None:
        """Drop the list so the next fetch_pricing hits the network."""
        self._set(pricing=[], last_fetched=None, error=None)
        logger.info("Pricing cache cleared")

    # ========================================================================
    # Optimistic edits
    # ========================================================================

    def update_pricing(self, service_code: str, updates: Mapping[str, Any]) -> bool:
        """
        Patch one entry in place (field names, not API aliases).

        Returns:
            True if an entry with service_code exists
        """
        found = False
        pricing = []
        for item in self.pricing:
            if item.service_code == service_code:
                item = item.model_copy(update=dict(updates))
                found = True
            pricing.append(item)
        if found:
            self._set(pricing=pricing)
            logger.info(f"Updated pricing: {service_code}")
        return found

    def add_pricing(self, item: Union[ServicePricing, Mapping[str, Any]]) -> ServicePricing:
        if not isinstance(item, ServicePricing):
            item = ServicePricing.model_validate(item)
        self._set(pricing=[*self.pricing, item])
        logger.info(f"Added pricing: {item.service_code}")
        return item

    def remove_pricing(self, service_code: str) -> bool:
        """
        Returns:
            True if an entry was removed
        """
        pricing = [p for p in self.pricing if p.service_code != service_code]
        removed = len(pricing) != len(self.pricing)
        if removed:
            self._set(pricing=pricing)
            logger.info(f"Removed pricing: {service_code}")
        return removed

    # ========================================================================
    # Reads
    # ========================================================================

    def get_by_code(self, service_code: str) -> Optional[ServicePricing]:
        return next((p for p in self.pricing if p.service_code == service_code), None)

    def get_active(self) -> List[ServicePricing]:
        return [p for p in self.pricing if p.is_active]

    def get_by_category(self, active_only: bool = False) -> Dict[str, List[ServicePricing]]:
        """Group entries by category; uncategorised ones go under "Other"."""
        grouped: Dict[str, List[ServicePricing]] = {}
        for item in self.get_active() if active_only else self.pricing:
            grouped.setdefault(item.category or DEFAULT_CATEGORY, []).append(item)
        return grouped
