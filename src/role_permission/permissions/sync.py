"""Bulk replacement of a role's directly assigned permissions."""

from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog

from role_permission.core.cache import ResolutionCache
from role_permission.core.errors import InvalidAssignmentError
from role_permission.permissions.hierarchy import HierarchyResolver


if TYPE_CHECKING:
    from role_permission.permissions.models import Role
    from role_permission.permissions.store import PermissionStore


logger = structlog.get_logger()


class AssignmentSynchronizer:
    """Replaces role assignment sets and keeps the resolution cache consistent.

    Module visibility is computed at check time, so a strict sync never
    records ancestors or children on its own.
    """

    def __init__(
        self,
        store: "PermissionStore",
        cache: ResolutionCache,
        hierarchy: HierarchyResolver | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.hierarchy = hierarchy or HierarchyResolver(store)

    async def sync_permissions(
        self,
        role: "Role",
        permission_ids: Iterable[int],
        recursive: bool = False,
    ) -> set[int]:
        """Replace a role's assignment set.

        Steps:
        1. Reject the request if any id does not exist
        2. Optionally add every descendant of the requested ids
        3. Replace the stored set in one transaction
        4. Evict the role's cached outcomes once the write is committed

        Args:
            role: The role whose assignments to replace
            permission_ids: Requested permission ids
            recursive: If True, include all descendants of the requested ids

        Returns:
            The assignment set now stored for the role

        Raises:
            InvalidAssignmentError: If any requested id does not exist
        """
        requested = set(permission_ids)

        missing = requested - await self.store.exist_all(requested)
        if missing:
            logger.warning(
                "role_sync_rejected",
                role_id=role.id,
                missing_ids=sorted(missing),
            )
            raise InvalidAssignmentError(missing_ids=missing)

        target = set(requested)
        if recursive:
            for permission_id in requested:
                target |= await self.hierarchy.descendant_ids(permission_id)

        await self.store.replace_assignments(role.id, target)
        await self.cache.invalidate_role(role.id)

        logger.info(
            "role_permissions_synced",
            role_id=role.id,
            recursive=recursive,
            requested=len(requested),
            assigned=len(target),
        )
        return target

    async def assigned_permission_ids(self, role: "Role") -> set[int]:
        """Get the ids directly assigned to a role."""
        return await self.store.assigned_ids(role.id)
