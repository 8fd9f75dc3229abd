"""Memoization of permission check outcomes per (role, slug).

Keys live under the configured namespace::

    {prefix}:role:{role_id}:perm:{slug}

The role id segment is an integer, so a slug can never make one
role's key collide with another role's.
"""

from collections.abc import Awaitable, Callable

import structlog

from role_permission.config import Settings
from role_permission.core.cache.backends import CacheBackend
from role_permission.core.constants import CACHE_DENIED, CACHE_GRANTED
from role_permission.core.errors import CacheBackendError


logger = structlog.get_logger()


class ResolutionCache:
    """Get-or-compute cache for boolean permission outcomes.

    Backend failures never fail a check: they are logged and the
    outcome is computed directly.
    """

    def __init__(self, backend: CacheBackend, settings: Settings) -> None:
        self.backend = backend
        self.enabled = settings.cache_enabled
        self.ttl_seconds = settings.cache_ttl_seconds
        self.prefix = settings.cache_key_prefix

    def key(self, role_id: int, slug: str) -> str:
        """Build the cache key for one role and slug."""
        return f"{self.role_prefix(role_id)}perm:{slug}"

    def role_prefix(self, role_id: int) -> str:
        """Build the key prefix shared by every entry of a role."""
        return f"{self.prefix}:role:{role_id}:"

    async def get_or_compute(
        self,
        role_id: int,
        slug: str,
        compute: Callable[[], Awaitable[bool]],
    ) -> bool:
        """Return the cached outcome, computing and storing it on a miss.

        Args:
            role_id: The role being checked
            slug: The permission slug being checked
            compute: Coroutine factory producing the uncached outcome

        Returns:
            The permission outcome
        """
        if not self.enabled:
            return await compute()

        key = self.key(role_id, slug)
        try:
            cached = await self.backend.get(key)
        except CacheBackendError as exc:
            logger.warning(
                "permission_cache_unavailable",
                operation="get",
                role_id=role_id,
                slug=slug,
                error=str(exc.__cause__ or exc),
            )
            return await compute()

        if cached is not None:
            return cached == CACHE_GRANTED

        result = await compute()
        try:
            await self.backend.set(
                key, CACHE_GRANTED if result else CACHE_DENIED, self.ttl_seconds
            )
        except CacheBackendError as exc:
            logger.warning(
                "permission_cache_unavailable",
                operation="set",
                role_id=role_id,
                slug=slug,
                error=str(exc.__cause__ or exc),
            )
        return result

    async def invalidate_role(self, role_id: int) -> None:
        """Evict every cached outcome of a role.

        Falls back to flushing the whole namespace when the backend
        cannot evict a single role's keys.
        """
        if not self.enabled:
            return
        if not self.backend.supports_scoped_eviction():
            await self.flush()
            return
        await self._delete_prefix(self.role_prefix(role_id), role_id=role_id)

    async def flush(self) -> None:
        """Evict every cached outcome in the namespace."""
        if not self.enabled:
            return
        await self._delete_prefix(f"{self.prefix}:")

    async def _delete_prefix(self, prefix: str, role_id: int | None = None) -> None:
        try:
            deleted = await self.backend.delete_prefix(prefix)
        except CacheBackendError as exc:
            logger.error(
                "permission_cache_eviction_failed",
                prefix=prefix,
                role_id=role_id,
                error=str(exc.__cause__ or exc),
            )
            return
        logger.debug("permission_cache_evicted", prefix=prefix, role_id=role_id, keys=deleted)
