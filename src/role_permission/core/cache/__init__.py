"""Cache module for permission resolution results.

Provides:
- Redis client connection management
- Cache backends (Redis, in-memory)
- The resolution cache used by the permission resolver
"""

from role_permission.core.cache.backends import (
    CacheBackend,
    MemoryCacheBackend,
    RedisCacheBackend,
    create_cache_backend,
)
from role_permission.core.cache.redis import close_redis_pools, redis_client
from role_permission.core.cache.resolution import ResolutionCache


__all__ = [
    "CacheBackend",
    "MemoryCacheBackend",
    "RedisCacheBackend",
    "ResolutionCache",
    "close_redis_pools",
    "create_cache_backend",
    "redis_client",
]
