"""
Default query options by key family, and cache key construction.
"""
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from config.settings import settings

from .core import QueryOptions


class DataCategory(Enum):
    """Families of dashboard data with different freshness needs."""
    ACCOUNT = "account"                   # profile, API keys: change on user action
    BALANCE = "balance"                   # wallet: changes on payment
    USAGE = "usage"                       # call counters, polled every minute
    DASHBOARD_STATS = "dashboard_stats"   # admin overview, polled every minute
    SYSTEM_METRICS = "system_metrics"     # CPU/memory/latency, polled every 30s
    CUSTOMER_LIST = "customer_list"       # admin customer tables
    REFERENCE = "reference"               # pricing catalogue, 1 hour
    DEFAULT = "default"


# Options by category (seconds). Missing keys fall back to settings.
TTL_CONFIG: Dict[DataCategory, Dict[str, Any]] = {
    DataCategory.ACCOUNT: {
        "cache_time": 300,
    },
    DataCategory.BALANCE: {
        "cache_time": 60,
    },
    DataCategory.USAGE: {
        "cache_time": 300,
        "refetch_interval": 60,
    },
    DataCategory.DASHBOARD_STATS: {
        "refetch_interval": 60,
    },
    DataCategory.SYSTEM_METRICS: {
        "cache_time": 30,
        "refetch_interval": 30,
    },
    DataCategory.CUSTOMER_LIST: {
        "cache_time": 120,
    },
    DataCategory.REFERENCE: {
        "cache_time": 3600,
    },
    DataCategory.DEFAULT: {},
}

_NAME_CATEGORIES: Dict[str, DataCategory] = {
    "customer-profile": DataCategory.ACCOUNT,
    "customer-api-keys": DataCategory.ACCOUNT,
    "customer-wallet": DataCategory.BALANCE,
    "customer-usage": DataCategory.USAGE,
    "admin-dashboard-stats": DataCategory.DASHBOARD_STATS,
    "admin-system-metrics": DataCategory.SYSTEM_METRICS,
    "admin-customers": DataCategory.CUSTOMER_LIST,
    "pricing": DataCategory.REFERENCE,
}


def cache_key(name: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Build a stable cache key from a query name and its parameters.

    Parameters are sorted and None values dropped, so the same filter set
    always maps to the same key and different filter sets coexist.

        cache_key("admin-customers", {"page": 2, "status": None})
        -> "admin-customers:page=2"
    """
    if not params:
        return name
    parts = [f"{k}={v}" for k, v in sorted(params.items()) if v is not None]
    if not parts:
        return name
    return f"{name}:{'&'.join(parts)}"


def get_category_for_key(key: str) -> DataCategory:
    """
    Determine the data category for a cache key.

    Only the name part (before any ':' parameters) is considered.
    """
    name = key.split(":", 1)[0]
    if name in _NAME_CATEGORIES:
        return _NAME_CATEGORIES[name]
    if name.startswith("pricing"):
        return DataCategory.REFERENCE
    return DataCategory.DEFAULT


def get_options_for_key(key: str, **overrides: Any) -> QueryOptions:
    """
    Get default QueryOptions for a cache key.

    Args:
        key: Cache key (parameters allowed)
        **overrides: QueryOptions fields that win over the category defaults

    Returns:
        QueryOptions for the key
    """
    config = TTL_CONFIG.get(get_category_for_key(key), {})
    values: Dict[str, Any] = {
        "cache_time": config.get("cache_time", settings.default_cache_time_seconds),
        "refetch_interval": config.get("refetch_interval"),
        "gc_time": settings.default_gc_time_seconds,
    }
    values.update(overrides)
    return QueryOptions(**values)
