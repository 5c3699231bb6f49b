"""flux_events package.

Resumable, pattern-matched dispatch of Surflux event streams.
"""

from flux_events.client import BaseEventClient, ConnectionState
from flux_events.cursor import CacheMethods, CursorStore, InMemoryCache
from flux_events.deepbook_client import DeepbookEventsClient
from flux_events.errors import (
    ConnectionFailedError,
    FluxEventsError,
    TransportClosedError,
    WaitTimeoutError,
)
from flux_events.events.types import DeepbookStreamType
from flux_events.package_client import PackageEventsClient
from flux_events.redis_cache import RedisCache

__all__ = [
    "BaseEventClient",
    "ConnectionState",
    "PackageEventsClient",
    "DeepbookEventsClient",
    "DeepbookStreamType",
    "CacheMethods",
    "CursorStore",
    "InMemoryCache",
    "RedisCache",
    "FluxEventsError",
    "ConnectionFailedError",
    "TransportClosedError",
    "WaitTimeoutError",
]
