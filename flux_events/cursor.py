"""
Cursor persistence for resumable streams.

The cursor is the highest `timestamp_ms` dispatched in a session. It is
restored when connecting and written back on disconnect, so a reconnect skips
events that were already delivered.

Any object with `get(key)` and `set(key, value)` works as the cache; both may
be plain functions or coroutines. Without one, an in-process InMemoryCache is
used, which does not survive a restart (see RedisCache for durability).
"""

import inspect
import logging
from typing import Any, Dict, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheMethods(Protocol):
    """Cache capability: get/set of string values, sync or async."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: str) -> Any: ...


class InMemoryCache:
    """Per-process cache used when the caller supplies none."""

    def __init__(self):
        self._values: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def should_skip(timestamp_ms: Optional[int], cursor_ms: Optional[int]) -> bool:
    """True if the event was already seen: both known and timestamp <= cursor."""
    if timestamp_ms is None or cursor_ms is None:
        return False
    return timestamp_ms <= cursor_ms


def advance(timestamp_ms: Optional[int], latest_ms: Optional[int]) -> Optional[int]:
    """Running maximum of the timestamps seen so far."""
    if timestamp_ms is None:
        return latest_ms
    if latest_ms is None or timestamp_ms > latest_ms:
        return timestamp_ms
    return latest_ms


class CursorStore:
    """Loads and saves the cursor under one fixed cache key."""

    def __init__(self, cache: Optional[CacheMethods], cache_key: str):
        self.cache = cache if cache is not None else InMemoryCache()
        self.cache_key = cache_key

    async def load(self, override_ms: Optional[int] = None) -> Optional[int]:
        """
        Read the cached cursor.

        Args:
            override_ms: Caller-supplied starting point. When given, the cache
                is not consulted and None is returned.

        Returns:
            The cached timestamp, or None when absent, unreadable or malformed
        """
        if override_ms is not None:
            return None

        try:
            cached = await _resolve(self.cache.get(self.cache_key))
        except Exception as e:
            logger.warning(f"Failed to load timestamp from cache: {e}")
            return None

        if not cached:
            return None

        if isinstance(cached, bytes):
            cached = cached.decode("utf-8", errors="replace")

        try:
            return int(str(cached).strip())
        except ValueError:
            logger.warning(f"Ignoring malformed cached timestamp {cached!r} for {self.cache_key}")
            return None

    async def save(self, latest_ms: Optional[int]) -> None:
        """Write the cursor; a session without timestamps leaves the cache untouched."""
        if latest_ms is None:
            return

        try:
            await _resolve(self.cache.set(self.cache_key, str(latest_ms)))
            logger.debug(f"Saved cursor {latest_ms} under {self.cache_key}")
        except Exception as e:
            logger.warning(f"Failed to save timestamp to cache: {e}")
