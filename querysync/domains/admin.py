"""
Admin back-office data: dashboard stats, customer list, system metrics.
"""
from typing import Any, Dict, List, Optional

from ..api_client import ApiClient
from ..cache import Mutation, QueryCache, cache_key, get_options_for_key
from ..schemas import CustomerSummary, DashboardStats, SystemMetrics
from .base import DataContext

STATS_KEY = "admin-dashboard-stats"
CUSTOMERS_KEY = "admin-customers"
METRICS_KEY = "admin-system-metrics"

ADMIN_KEYS = (STATS_KEY, CUSTOMERS_KEY, METRICS_KEY)


def _parse_customers(data: Any) -> List[CustomerSummary]:
    rows = data.get("customers", []) if isinstance(data, dict) else data
    return [CustomerSummary.model_validate(row) for row in rows or []]


class AdminData(DataContext):
    """
    Admin dashboard queries.

    Stats refresh every minute and system metrics every 30 seconds while
    the context is started.
    """

    def __init__(
        self,
        cache: QueryCache,
        client: ApiClient,
        customer_filters: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(cache)
        self._client = client
        self.stats = self._query(
            STATS_KEY,
            client.fetcher("/admin/dashboard/stats", extract=DashboardStats.model_validate),
            get_options_for_key(STATS_KEY),
        )
        # Each filter set is its own entry, e.g. "admin-customers:status=active"
        customers_key = cache_key(CUSTOMERS_KEY, customer_filters)
        self.customers = self._query(
            customers_key,
            client.fetcher("/admin/customers", params=customer_filters, extract=_parse_customers),
            get_options_for_key(customers_key),
        )
        self.metrics = self._query(
            METRICS_KEY,
            client.fetcher("/admin/system/metrics", extract=SystemMetrics.model_validate),
            get_options_for_key(METRICS_KEY),
        )

    async def refresh_stats(self) -> DashboardStats:
        return await self.stats.refetch()

    async def refresh_customers(self) -> List[CustomerSummary]:
        return await self.customers.refetch()

    async def refresh_metrics(self) -> SystemMetrics:
        return await self.metrics.refetch()

    def update_customer_mutation(self) -> Mutation:
        """PUT /admin/customers/{id}; refreshes every customer list and the stats."""
        client = self._client

        async def update(variables: Dict[str, Any]) -> Any:
            customer_id = variables["id"]
            changes = {k: v for k, v in variables.items() if k != "id"}
            return await client.put(f"/admin/customers/{customer_id}", changes)

        cache = self._cache
        return Mutation(
            update,
            cache=cache,
            invalidate_queries=[STATS_KEY],
            on_success=lambda result, variables: cache.invalidate_matching(CUSTOMERS_KEY),
        )


def invalidate_admin_data(cache: QueryCache) -> int:
    """Mark all admin queries stale, including filtered customer lists."""
    count = cache.invalidate([STATS_KEY, METRICS_KEY])
    return count + cache.invalidate_matching(CUSTOMERS_KEY)
