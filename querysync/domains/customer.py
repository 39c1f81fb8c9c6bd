"""
Customer self-service data: profile, wallet, usage and API keys.
"""
from typing import Any, List

from ..api_client import ApiClient
from ..cache import QueryCache, get_options_for_key
from ..schemas import ApiKey, CustomerProfile, WalletData
from .base import DataContext
from .usage import USAGE_KEY, fetch_usage

PROFILE_KEY = "customer-profile"
WALLET_KEY = "customer-wallet"
API_KEYS_KEY = "customer-api-keys"

CUSTOMER_KEYS = (PROFILE_KEY, WALLET_KEY, USAGE_KEY, API_KEYS_KEY)


def _parse_api_keys(data: Any) -> List[ApiKey]:
    rows = data.get("apiKeys", []) if isinstance(data, dict) else data
    return [ApiKey.model_validate(row) for row in rows or []]


class CustomerData(DataContext):
    """
    Everything the customer dashboard shows about the signed-in customer.

    Pages read e.g. customer.wallet.data; after a top-up the wallet page
    calls invalidate_customer_data(cache) or customer.refresh_wallet().
    """

    def __init__(self, cache: QueryCache, client: ApiClient):
        super().__init__(cache)
        self.profile = self._query(
            PROFILE_KEY,
            client.fetcher("/customer/profile", extract=CustomerProfile.model_validate),
            get_options_for_key(PROFILE_KEY),
        )
        self.wallet = self._query(
            WALLET_KEY,
            client.fetcher("/customer/wallet", extract=WalletData.model_validate),
            get_options_for_key(WALLET_KEY),
        )
        self.usage = self._query(USAGE_KEY, fetch_usage(client), get_options_for_key(USAGE_KEY))
        self.api_keys = self._query(
            API_KEYS_KEY,
            client.fetcher("/customer/api-keys", extract=_parse_api_keys),
            get_options_for_key(API_KEYS_KEY),
        )

    async def refresh_profile(self) -> CustomerProfile:
        return await self.profile.refetch()

    async def refresh_wallet(self) -> WalletData:
        return await self.wallet.refetch()

    async def refresh_usage(self) -> Any:
        return await self.usage.refetch()

    async def refresh_api_keys(self) -> List[ApiKey]:
        return await self.api_keys.refetch()


def invalidate_customer_data(cache: QueryCache) -> int:
    """Mark all customer queries stale (after a profile, wallet or key change)."""
    return cache.invalidate(CUSTOMER_KEYS)
