"""Permission checking logic.

This module decides whether a role is granted a permission slug,
combining direct assignment, module descendant visibility and the
master role bypass.
"""

from collections.abc import Iterable
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from role_permission.config import Settings
from role_permission.core.cache import ResolutionCache
from role_permission.permissions.hierarchy import HierarchyResolver


if TYPE_CHECKING:
    from role_permission.permissions.models import Role
    from role_permission.permissions.store import PermissionStore


logger = structlog.get_logger()


class Decision(str, Enum):
    """Why a permission check was granted or denied."""

    BYPASS = "bypass"
    DIRECT_GRANT = "direct_grant"
    DESCENDANT_GRANT = "descendant_grant"
    DENY = "deny"

    @property
    def granted(self) -> bool:
        return self is not Decision.DENY


class PermissionResolver:
    """Service for checking role permissions.

    Modules are granted when any permission in their subtree is
    assigned to the role; actions only by direct assignment. Unknown
    slugs are denied, never raised.
    """

    def __init__(
        self,
        store: "PermissionStore",
        cache: ResolutionCache,
        settings: Settings,
        hierarchy: HierarchyResolver | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.master_role_slug = settings.master_role_slug
        self.hierarchy = hierarchy or HierarchyResolver(store)

    def is_master(self, role: "Role") -> bool:
        """Check if ``role`` is the configured master role."""
        return role.slug == self.master_role_slug

    async def decide(self, role: "Role", slug: str) -> Decision:
        """Resolve a permission check without consulting the cache.

        Args:
            role: The role to check
            slug: The permission slug (e.g., "posts.edit")

        Returns:
            The decision, before collapsing to a boolean
        """
        if self.is_master(role):
            return Decision.BYPASS

        permission = await self.store.find_by_slug(slug)
        if permission is None:
            return Decision.DENY

        if await self.store.is_assigned(role.id, permission.id):
            return Decision.DIRECT_GRANT

        if permission.is_module:
            descendant_ids = await self.hierarchy.descendant_ids(permission.id)
            if await self.store.is_any_assigned(role.id, descendant_ids):
                return Decision.DESCENDANT_GRANT

        return Decision.DENY

    async def has_permission(self, role: "Role", slug: str) -> bool:
        """Check if a role has a specific permission.

        Args:
            role: The role to check
            slug: The permission slug

        Returns:
            True if the role has the permission, False otherwise
        """
        # Master role bypasses the cache and every lookup
        if self.is_master(role):
            logger.debug("master_role_bypass", role_id=role.id, slug=slug)
            return True

        async def compute() -> bool:
            decision = await self.decide(role, slug)
            logger.debug(
                "permission_resolved",
                role_id=role.id,
                slug=slug,
                decision=decision.value,
            )
            return decision.granted

        return await self.cache.get_or_compute(role.id, slug, compute)

    async def has_any_permission(self, role: "Role", slugs: Iterable[str]) -> bool:
        """Check if a role has any of the specified permissions.

        Stops at the first granted slug.
        """
        for slug in slugs:
            if await self.has_permission(role, slug):
                return True
        return False

    async def has_all_permissions(self, role: "Role", slugs: Iterable[str]) -> bool:
        """Check if a role has all of the specified permissions.

        Stops at the first denied slug.
        """
        for slug in slugs:
            if not await self.has_permission(role, slug):
                return False
        return True

    async def can_access_route(self, role: "Role", route_key: str) -> bool:
        """Check if a role may access a route.

        Routes no permission declares are unguarded.

        Args:
            role: The role to check
            route_key: Opaque route identifier

        Returns:
            True if the route is unguarded or its permission is granted
        """
        permission = await self.store.find_by_route_key(route_key)
        if permission is None:
            return True
        return await self.has_permission(role, permission.slug)

    @staticmethod
    def has_role(role: "Role", slug: str) -> bool:
        return role.slug == slug

    @staticmethod
    def has_any_role(role: "Role", slugs: Iterable[str]) -> bool:
        return role.slug in set(slugs)
