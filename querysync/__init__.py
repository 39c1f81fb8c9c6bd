"""
querysync - data cache and synchronization layer for the dashboard client.
"""
import logging
from typing import Optional

from config.settings import settings

from .cache import Mutation, QueryCache, QueryOptions, create_cache
from .errors import NetworkError, QuerySyncError, RemoteError, StaleAuthError

__version__ = "0.1.0"

__all__ = [
    "Mutation",
    "QueryCache",
    "QueryOptions",
    "create_cache",
    "NetworkError",
    "QuerySyncError",
    "RemoteError",
    "StaleAuthError",
    "configure_logging",
]


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging at the given level (defaults to settings)."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
