"""Permission tree traversal and structural validation.

Traversals are iterative worklists over ids fetched from the store,
with an explicit visited set so a corrupted (cyclic) store can never
make them loop.
"""

from typing import TYPE_CHECKING, Any

import structlog

from role_permission.core.errors import (
    CycleError,
    HierarchyIntegrityError,
    PermissionNotFoundError,
    SelfParentError,
)


if TYPE_CHECKING:
    from role_permission.permissions.models import Permission
    from role_permission.permissions.store import PermissionStore


logger = structlog.get_logger()


class HierarchyResolver:
    """Computes the transitive closure of the parent/child relation."""

    def __init__(self, store: "PermissionStore") -> None:
        self.store = store

    async def descendant_ids(self, permission_id: int) -> set[int]:
        """Get the ids of every permission below ``permission_id``.

        Walks the tree one level at a time, so a subtree of depth N
        costs N store round trips.

        Args:
            permission_id: Root of the subtree

        Returns:
            Descendant ids, excluding ``permission_id`` itself. Empty for
            leaves and for unknown ids.
        """
        descendants: set[int] = set()
        visited = {permission_id}
        frontier = {permission_id}

        while frontier:
            child_ids = await self.store.child_ids_of(frontier)
            revisited = child_ids & visited
            if revisited:
                logger.warning(
                    "permission_hierarchy_revisit",
                    root_id=permission_id,
                    revisited_ids=sorted(revisited),
                )
            frontier = child_ids - visited
            visited |= frontier
            descendants |= frontier

        return descendants

    async def ancestors(self, permission_id: int) -> list["Permission"]:
        """Get the parent chain of a permission.

        Args:
            permission_id: Permission whose ancestors to fetch

        Returns:
            Ancestors ordered nearest parent first, root last

        Raises:
            HierarchyIntegrityError: If the stored parent links loop
        """
        chain: list[Permission] = []
        seen = {permission_id}

        parent = await self.store.parent_of(permission_id)
        while parent is not None:
            if parent.id in seen:
                logger.error(
                    "permission_hierarchy_cycle",
                    permission_id=permission_id,
                    repeated_id=parent.id,
                )
                raise HierarchyIntegrityError(
                    details={"permission_id": permission_id, "repeated_id": parent.id}
                )
            seen.add(parent.id)
            chain.append(parent)
            parent = await self.store.parent_of(parent.id)

        return chain

    async def ancestor_ids(self, permission_id: int) -> list[int]:
        """Get ancestor ids, nearest parent first."""
        return [ancestor.id for ancestor in await self.ancestors(permission_id)]

    async def to_tree(self, root_id: int) -> dict[str, Any]:
        """Export a permission and its subtree as nested dictionaries.

        Each node has the keys ``id``, ``name``, ``slug``, ``kind``,
        ``route_key``, ``order``, ``active`` and ``children``, with
        children in store order.

        Raises:
            PermissionNotFoundError: If ``root_id`` does not exist
        """
        root = await self.store.find_by_id(root_id)
        if root is None:
            raise PermissionNotFoundError(permission_id=root_id)

        tree = _tree_node(root)
        visited = {root.id}
        pending: list[tuple[int, dict[str, Any]]] = [(root.id, tree)]

        while pending:
            parent_id, node = pending.pop()
            for child in await self.store.children_of(parent_id):
                if child.id in visited:
                    logger.warning(
                        "permission_hierarchy_revisit",
                        root_id=root_id,
                        revisited_ids=[child.id],
                    )
                    continue
                visited.add(child.id)
                child_node = _tree_node(child)
                node["children"].append(child_node)
                pending.append((child.id, child_node))

        return tree


def _tree_node(permission: "Permission") -> dict[str, Any]:
    kind = permission.kind
    return {
        "id": permission.id,
        "name": permission.name,
        "slug": permission.slug,
        "kind": getattr(kind, "value", kind),
        "route_key": permission.route_key,
        "order": permission.order,
        "active": permission.active,
        "children": [],
    }


class HierarchyValidator:
    """Guards structural writes against cycles.

    Must run before a parent change is flushed; a committed cycle
    would leave every traversal to its visited-set guard.
    """

    def __init__(
        self,
        store: "PermissionStore",
        resolver: HierarchyResolver | None = None,
    ) -> None:
        self.store = store
        self.resolver = resolver or HierarchyResolver(store)

    async def validate_parent_assignment(
        self,
        permission_id: int | None,
        new_parent_id: int | None,
    ) -> None:
        """Check that ``new_parent_id`` may become the parent of ``permission_id``.

        Args:
            permission_id: Permission being written, None when not yet stored
            new_parent_id: Proposed parent, None to make it a root

        Raises:
            SelfParentError: If the permission would be its own parent
            PermissionNotFoundError: If the proposed parent does not exist
            CycleError: If the proposed parent is one of its descendants
        """
        if new_parent_id is None:
            return

        if permission_id is not None and new_parent_id == permission_id:
            raise SelfParentError(
                details={"permission_id": permission_id, "parent_id": new_parent_id}
            )

        if await self.store.find_by_id(new_parent_id) is None:
            raise PermissionNotFoundError(permission_id=new_parent_id)

        if permission_id is None or await self.store.find_by_id(permission_id) is None:
            return

        if new_parent_id in await self.resolver.descendant_ids(permission_id):
            raise CycleError(
                "Would create a cycle: new parent is a descendant",
                details={"permission_id": permission_id, "parent_id": new_parent_id},
            )
