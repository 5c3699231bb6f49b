"""
Redis-backed cache for durable stream cursors.

Plugs into CursorStore through the same get/set surface as InMemoryCache, so
a restarted process resumes from the last saved timestamp.

Usage:
    cache = RedisCache("redis://localhost:6379/0")
    client = PackageEventsClient(api_key="...", cache=cache)
    await client.connect()
    ...
    await client.disconnect()
    await cache.close()
"""

import asyncio
import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RedisCache:
    """Async Redis implementation of the cursor cache capability."""

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        ttl_days: Optional[int] = None,
        key_prefix: str = "",
        connection_timeout: float = 5.0,
    ):
        """
        Initialize the cache.

        Args:
            redis_url: Redis connection URL
            ttl_days: Expire saved cursors after this many days (None keeps them)
            key_prefix: Prepended to every cache key
            connection_timeout: Timeout for Redis operations (seconds)
        """
        self.redis_url = redis_url
        self.ttl_seconds = ttl_days * 86400 if ttl_days else None
        self.key_prefix = key_prefix
        self.connection_timeout = connection_timeout
        self.redis: Optional[redis.Redis] = None
        self._started = False
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        """Open the connection pool. Failures leave the cache disabled."""
        if self._started:
            return

        async with self._lock:
            if self._started:
                return

            try:
                self.redis = redis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    socket_timeout=self.connection_timeout,
                    socket_connect_timeout=self.connection_timeout,
                )
                await asyncio.wait_for(self.redis.ping(), timeout=self.connection_timeout)
                self._started = True
                logger.info("RedisCache: Redis connection established")
            except (RedisError, asyncio.TimeoutError, ConnectionError) as e:
                logger.error(f"Failed to connect to Redis: {e}")
                self.redis = None
                self._started = False

    async def close(self) -> None:
        async with self._lock:
            if self.redis:
                await self.redis.aclose()
                self.redis = None
                self._started = False
                logger.info("RedisCache: Redis connection closed")

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        await self.start()
        if not self.redis:
            logger.warning("RedisCache not available, treating as cache miss")
            return None
        return await self.redis.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        await self.start()
        if not self.redis:
            logger.warning("RedisCache not available, cursor not saved")
            return
        if self.ttl_seconds:
            await self.redis.setex(self._key(key), self.ttl_seconds, value)
        else:
            await self.redis.set(self._key(key), value)
