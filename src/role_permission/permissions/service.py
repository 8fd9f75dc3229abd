"""Outbound contract of the authorization core.

``RolePermissionService`` wires the store, hierarchy resolver,
permission resolver, assignment synchronizer and resolution cache
together from one ``Settings`` value.
"""

from collections.abc import Iterable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from role_permission.config import Settings
from role_permission.core.cache import CacheBackend, ResolutionCache, create_cache_backend
from role_permission.core.errors import PermissionNotFoundError
from role_permission.permissions.checker import Decision, PermissionResolver
from role_permission.permissions.hierarchy import HierarchyResolver
from role_permission.permissions.models import Permission, PermissionKind, Role
from role_permission.permissions.store import PermissionStore, SQLAlchemyPermissionStore
from role_permission.permissions.sync import AssignmentSynchronizer


class RolePermissionService:
    """Facade over the permission core.

    Usage:
        service = RolePermissionService.from_session(session, settings)
        if await service.has_permission(user.role, "posts.edit"):
            ...

    Check methods accept ``role=None`` for principals without a role
    and deny them.
    """

    def __init__(
        self,
        store: PermissionStore,
        settings: Settings,
        cache_backend: CacheBackend | None = None,
    ) -> None:
        self.store = store
        self.settings = settings
        if cache_backend is None:
            cache_backend = create_cache_backend(settings)
        self.cache = ResolutionCache(cache_backend, settings)
        self.hierarchy = HierarchyResolver(store)
        self.resolver = PermissionResolver(store, self.cache, settings, self.hierarchy)
        self.synchronizer = AssignmentSynchronizer(store, self.cache, self.hierarchy)

    @classmethod
    def from_session(
        cls,
        session: AsyncSession,
        settings: Settings,
        cache_backend: CacheBackend | None = None,
    ) -> "RolePermissionService":
        """Build a service over a SQLAlchemy session."""
        return cls(SQLAlchemyPermissionStore(session), settings, cache_backend)

    # ------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------

    async def has_permission(self, role: Role | None, slug: str) -> bool:
        if role is None:
            return False
        return await self.resolver.has_permission(role, slug)

    async def has_any_permission(self, role: Role | None, slugs: Iterable[str]) -> bool:
        if role is None:
            return False
        return await self.resolver.has_any_permission(role, slugs)

    async def has_all_permissions(self, role: Role | None, slugs: Iterable[str]) -> bool:
        if role is None:
            return False
        return await self.resolver.has_all_permissions(role, slugs)

    async def can_access_route(self, role: Role | None, route_key: str) -> bool:
        """Check route access; unguarded routes are open even without a role."""
        if role is None:
            return await self.store.find_by_route_key(route_key) is None
        return await self.resolver.can_access_route(role, route_key)

    async def explain(self, role: Role, slug: str) -> Decision:
        """Return the uncached decision behind a check, for diagnostics."""
        return await self.resolver.decide(role, slug)

    def has_role(self, role: Role | None, slug: str) -> bool:
        return role is not None and self.resolver.has_role(role, slug)

    def has_any_role(self, role: Role | None, slugs: Iterable[str]) -> bool:
        return role is not None and self.resolver.has_any_role(role, slugs)

    def is_master(self, role: Role | None) -> bool:
        return role is not None and self.resolver.is_master(role)

    # ------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------

    async def sync_permissions(
        self,
        role: Role,
        permission_ids: Iterable[int],
        recursive: bool = False,
    ) -> set[int]:
        return await self.synchronizer.sync_permissions(role, permission_ids, recursive)

    async def assigned_permission_ids(self, role: Role) -> set[int]:
        return await self.synchronizer.assigned_permission_ids(role)

    # ------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------

    async def get_all_descendant_ids(self, permission_id: int) -> set[int]:
        return await self.hierarchy.descendant_ids(permission_id)

    async def get_ancestors(self, permission_id: int) -> list[Permission]:
        return await self.hierarchy.ancestors(permission_id)

    async def to_tree(self, root_id: int) -> dict[str, Any]:
        return await self.hierarchy.to_tree(root_id)

    async def create_permission(
        self,
        name: str,
        slug: str,
        kind: PermissionKind = PermissionKind.MODULE,
        parent_id: int | None = None,
        description: str | None = None,
        route_key: str | None = None,
        order: int = 0,
        active: bool = True,
    ) -> Permission:
        """Create a permission under ``parent_id``.

        Raises:
            PermissionNotFoundError: If the parent does not exist
        """
        permission = Permission(
            name=name,
            slug=slug,
            kind=kind,
            parent_id=parent_id,
            description=description,
            route_key=route_key,
            order=order,
            active=active,
        )
        return await self.store.save_permission(permission)

    async def move_permission(self, permission_id: int, new_parent_id: int | None) -> Permission:
        """Re-parent a permission.

        Raises:
            PermissionNotFoundError: If either permission does not exist
            SelfParentError: If the permission would be its own parent
            CycleError: If the new parent is one of its descendants
        """
        permission = await self.store.find_by_id(permission_id)
        if permission is None:
            raise PermissionNotFoundError(permission_id=permission_id)
        permission.parent_id = new_parent_id
        permission = await self.store.save_permission(permission)
        # Module visibility depends on the tree, for every role
        await self.cache.flush()
        return permission

    async def list_visible_roles(self, active_only: bool = False) -> list[Role]:
        """List roles other than the master role."""
        return await self.store.list_roles(
            exclude_slug=self.settings.master_role_slug,
            active_only=active_only,
        )

    async def list_root_permissions(self, active_only: bool = False) -> list[Permission]:
        return await self.store.roots(active_only=active_only)

    # ------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------

    async def clear_cache(self, role: Role) -> None:
        """Evict one role's cached outcomes."""
        await self.cache.invalidate_role(role.id)

    async def clear_cache_all(self) -> None:
        await self.cache.flush()
