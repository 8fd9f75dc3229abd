"""Cache backends for permission resolution results.

Backends store short string values under string keys with a TTL and
declare whether they can evict a key prefix on their own. Any failure
to reach the backing service surfaces as ``CacheBackendError``.
"""

import time
from collections.abc import Callable
from typing import Protocol

from redis.exceptions import RedisError

from role_permission.config import Settings
from role_permission.core.cache.redis import redis_client
from role_permission.core.constants import CACHE_SCAN_BATCH_SIZE
from role_permission.core.errors import CacheBackendError


class CacheBackend(Protocol):
    """Storage used by the resolution cache."""

    def supports_scoped_eviction(self) -> bool:
        """Return True if ``delete_prefix`` may be used for a single role."""
        ...

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete_prefix(self, prefix: str) -> int: ...


class RedisCacheBackend:
    """Redis-backed cache supporting per-role eviction through SCAN."""

    def __init__(self, redis_url: str) -> None:
        self.redis_url = redis_url

    def supports_scoped_eviction(self) -> bool:
        return True

    async def get(self, key: str) -> str | None:
        try:
            async with redis_client(self.redis_url) as client:
                return await client.get(key)
        except (RedisError, OSError) as exc:
            raise CacheBackendError(details={"operation": "get", "key": key}) from exc

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            async with redis_client(self.redis_url) as client:
                await client.setex(key, ttl_seconds, value)
        except (RedisError, OSError) as exc:
            raise CacheBackendError(details={"operation": "set", "key": key}) from exc

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``.

        Args:
            prefix: Literal key prefix (glob characters are escaped)

        Returns:
            Number of keys deleted
        """
        pattern = _escape_glob(prefix) + "*"
        deleted = 0
        try:
            async with redis_client(self.redis_url) as client:
                cursor = 0
                while True:
                    cursor, keys = await client.scan(
                        cursor=cursor,
                        match=pattern,
                        count=CACHE_SCAN_BATCH_SIZE,
                    )
                    if keys:
                        deleted += await client.delete(*keys)
                    if cursor == 0:
                        break
        except (RedisError, OSError) as exc:
            raise CacheBackendError(
                details={"operation": "delete_prefix", "prefix": prefix}
            ) from exc
        return deleted


class MemoryCacheBackend:
    """In-process TTL cache for single-process deployments and tests.

    Does not offer scoped eviction; invalidating a role flushes the
    whole namespace.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    def supports_scoped_eviction(self) -> bool:
        return False

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        now = self._clock()
        self._purge_expired(now)
        self._entries[key] = (value, now + ttl_seconds)

    def _purge_expired(self, now: float) -> None:
        """Drop every entry whose TTL has elapsed, read or not."""
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    async def delete_prefix(self, prefix: str) -> int:
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def __len__(self) -> int:
        return len(self._entries)


def _escape_glob(value: str) -> str:
    """Escape Redis glob metacharacters in a literal key prefix."""
    for char in ("\\", "*", "?", "[", "]"):
        value = value.replace(char, "\\" + char)
    return value


def create_cache_backend(settings: Settings) -> CacheBackend:
    """Build the backend named by ``settings.cache_backend``."""
    if settings.cache_backend == "memory":
        return MemoryCacheBackend()
    return RedisCacheBackend(str(settings.redis_url))
