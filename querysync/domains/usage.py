"""Customer API usage counters, polled every minute."""
from typing import Any, Optional

from ..api_client import ApiClient
from ..cache import QueryCache, get_options_for_key
from ..cache.core import Fetcher
from ..schemas import UsageStats
from .base import DataContext

USAGE_KEY = "customer-usage"


def parse_usage(data: Any) -> UsageStats:
    """Extract usage from a response; missing usage means zeroed counters."""
    usage = data.get("usage") if isinstance(data, dict) else None
    if not usage:
        return UsageStats()
    return UsageStats.model_validate(usage)


def fetch_usage(client: ApiClient) -> Fetcher:
    return client.fetcher("/customer/usage", extract=parse_usage)


class UsageData(DataContext):
    """Usage counters shared by the customer and admin dashboards."""

    def __init__(self, cache: QueryCache, client: ApiClient):
        super().__init__(cache)
        self.usage = self._query(USAGE_KEY, fetch_usage(client), get_options_for_key(USAGE_KEY))

    @property
    def error_message(self) -> Optional[str]:
        error = self.usage.error
        return str(error) if error is not None else None

    async def refresh_usage(self) -> UsageStats:
        return await self.usage.refetch()
