"""Redis client configuration and connection management.

Provides async Redis clients drawn from one connection pool per URL.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool


# Connection pools for efficient connection reuse, keyed by URL
_pools: dict[str, ConnectionPool] = {}


def _get_pool(redis_url: str) -> ConnectionPool:
    """Get or create the Redis connection pool for ``redis_url``."""
    pool = _pools.get(redis_url)
    if pool is None:
        pool = ConnectionPool.from_url(
            redis_url,
            max_connections=50,
            decode_responses=True,
        )
        _pools[redis_url] = pool
    return pool


@asynccontextmanager
async def redis_client(redis_url: str) -> AsyncGenerator[redis.Redis, None]:  # type: ignore[type-arg]
    """Context manager for Redis client.

    Usage:
        async with redis_client("redis://localhost:6379") as client:
            await client.set("key", "value")
    """
    client = redis.Redis(connection_pool=_get_pool(redis_url))
    try:
        yield client
    finally:
        await client.aclose()


async def close_redis_pools() -> None:
    """Close every Redis connection pool.

    Call this during application shutdown.
    """
    while _pools:
        _, pool = _pools.popitem()
        await pool.disconnect()
