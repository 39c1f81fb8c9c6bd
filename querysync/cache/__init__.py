"""
Client-side query cache with deduplication, push invalidation and
scheduled refetch.
"""
from .core import CacheEntry, Fetcher, QueryOptions, QueryStatus
from .ttl_policies import (
    TTL_CONFIG,
    DataCategory,
    cache_key,
    get_category_for_key,
    get_options_for_key,
)
from .bus import NotificationBus
from .store import CacheStore
from .coordinator import FetchCoordinator
from .scheduler import RefetchScheduler
from .observer import QueryObserver
from .mutation import Mutation, MutationState
from .manager import QueryCache, create_cache

__all__ = [
    # Core types
    "CacheEntry",
    "Fetcher",
    "QueryOptions",
    "QueryStatus",
    # TTL policies
    "TTL_CONFIG",
    "DataCategory",
    "cache_key",
    "get_category_for_key",
    "get_options_for_key",
    # Building blocks
    "NotificationBus",
    "CacheStore",
    "FetchCoordinator",
    "RefetchScheduler",
    # Consumers
    "QueryObserver",
    "Mutation",
    "MutationState",
    # Manager
    "QueryCache",
    "create_cache",
]
