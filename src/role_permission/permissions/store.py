"""Permission store contract and its SQLAlchemy implementation.

The core only reads permissions and roles through this contract. The
single mutable shared resource, a role's assignment set, is replaced
atomically by ``replace_assignments``.
"""

from collections.abc import Iterable
from typing import Protocol

import structlog
from sqlalchemy import delete, exists, inspect, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from role_permission.core.errors import AppException
from role_permission.permissions.hierarchy import HierarchyValidator
from role_permission.permissions.models import Permission, Role, role_permissions


logger = structlog.get_logger()


class PermissionStore(Protocol):
    """Query contract the authorization core consumes."""

    async def find_by_id(self, permission_id: int) -> Permission | None: ...

    async def find_by_slug(self, slug: str) -> Permission | None: ...

    async def find_by_route_key(self, route_key: str) -> Permission | None: ...

    async def children_of(self, permission_id: int) -> list[Permission]: ...

    async def child_ids_of(self, parent_ids: Iterable[int]) -> set[int]: ...

    async def parent_of(self, permission_id: int) -> Permission | None: ...

    async def exist_all(self, permission_ids: Iterable[int]) -> set[int]: ...

    async def assigned_ids(self, role_id: int) -> set[int]: ...

    async def is_assigned(self, role_id: int, permission_id: int) -> bool: ...

    async def is_any_assigned(self, role_id: int, permission_ids: Iterable[int]) -> bool: ...

    async def replace_assignments(self, role_id: int, permission_ids: Iterable[int]) -> None: ...

    async def save_permission(self, permission: Permission) -> Permission: ...

    async def roots(self, active_only: bool = False) -> list[Permission]: ...

    async def list_roles(
        self,
        exclude_slug: str | None = None,
        active_only: bool = False,
    ) -> list[Role]: ...


class SQLAlchemyPermissionStore:
    """Permission store backed by an async SQLAlchemy session.

    Writes commit the session when ``commit_on_write`` is set, so the
    cache can be evicted strictly after the data is durable. Pass
    ``commit_on_write=False`` to leave transaction control to the caller.
    """

    def __init__(self, session: AsyncSession, commit_on_write: bool = True) -> None:
        self.session = session
        self.commit_on_write = commit_on_write
        self.validator = HierarchyValidator(self)

    # ------------------------------------------------------------
    # Permission reads
    # ------------------------------------------------------------

    async def find_by_id(self, permission_id: int) -> Permission | None:
        return await self.session.get(Permission, permission_id)

    async def find_by_slug(self, slug: str) -> Permission | None:
        stmt = select(Permission).where(Permission.slug == slug)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_route_key(self, route_key: str) -> Permission | None:
        """Get the first permission guarding ``route_key``."""
        stmt = (
            select(Permission)
            .where(Permission.route_key == route_key)
            .order_by(Permission.order, Permission.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def children_of(self, permission_id: int) -> list[Permission]:
        """Get the immediate children of a permission.

        Args:
            permission_id: The parent permission's id

        Returns:
            Children ordered by ``order`` ascending, ties broken by id
        """
        stmt = (
            select(Permission)
            .where(Permission.parent_id == permission_id)
            .order_by(Permission.order, Permission.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def child_ids_of(self, parent_ids: Iterable[int]) -> set[int]:
        """Get the ids of all immediate children of any of ``parent_ids``."""
        parent_ids = list(parent_ids)
        if not parent_ids:
            return set()
        stmt = select(Permission.id).where(Permission.parent_id.in_(parent_ids))
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def parent_of(self, permission_id: int) -> Permission | None:
        permission = await self.find_by_id(permission_id)
        if permission is None or permission.parent_id is None:
            return None
        return await self.find_by_id(permission.parent_id)

    async def exist_all(self, permission_ids: Iterable[int]) -> set[int]:
        """Get the subset of ``permission_ids`` that exist."""
        permission_ids = set(permission_ids)
        if not permission_ids:
            return set()
        stmt = select(Permission.id).where(Permission.id.in_(permission_ids))
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def roots(self, active_only: bool = False) -> list[Permission]:
        """List root permissions in display order.

        Args:
            active_only: Exclude inactive permissions

        Returns:
            Permissions without a parent
        """
        stmt = select(Permission).where(Permission.parent_id.is_(None))
        if active_only:
            stmt = stmt.where(Permission.active.is_(True))
        stmt = stmt.order_by(Permission.order, Permission.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------

    async def list_roles(
        self,
        exclude_slug: str | None = None,
        active_only: bool = False,
    ) -> list[Role]:
        """List roles ordered by name.

        Args:
            exclude_slug: Slug to hide, typically the master role
            active_only: Exclude inactive roles

        Returns:
            Matching roles
        """
        stmt = select(Role)
        if exclude_slug is not None:
            stmt = stmt.where(Role.slug != exclude_slug)
        if active_only:
            stmt = stmt.where(Role.active.is_(True))
        stmt = stmt.order_by(Role.name, Role.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def save_role(self, role: Role) -> Role:
        self.session.add(role)
        await self._write()
        return role

    # ------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------

    async def assigned_ids(self, role_id: int) -> set[int]:
        stmt = select(role_permissions.c.permission_id).where(
            role_permissions.c.role_id == role_id
        )
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def is_assigned(self, role_id: int, permission_id: int) -> bool:
        stmt = select(
            exists().where(
                role_permissions.c.role_id == role_id,
                role_permissions.c.permission_id == permission_id,
            )
        )
        result = await self.session.execute(stmt)
        return bool(result.scalar())

    async def is_any_assigned(self, role_id: int, permission_ids: Iterable[int]) -> bool:
        permission_ids = set(permission_ids)
        if not permission_ids:
            return False
        stmt = select(
            exists().where(
                role_permissions.c.role_id == role_id,
                role_permissions.c.permission_id.in_(permission_ids),
            )
        )
        result = await self.session.execute(stmt)
        return bool(result.scalar())

    async def replace_assignments(self, role_id: int, permission_ids: Iterable[int]) -> None:
        """Replace a role's whole assignment set in one transaction.

        The role row is locked first (where the dialect supports
        ``FOR UPDATE``) so concurrent replaces for the same role
        serialize instead of interleaving.

        Args:
            role_id: The role's id
            permission_ids: The complete new assignment set

        Raises:
            SQLAlchemyError: If the write fails; the previous set is kept
        """
        rows = [
            {"role_id": role_id, "permission_id": permission_id}
            for permission_id in sorted(set(permission_ids))
        ]
        try:
            await self.session.execute(
                select(Role.id).where(Role.id == role_id).with_for_update()
            )
            await self.session.execute(
                delete(role_permissions).where(role_permissions.c.role_id == role_id)
            )
            if rows:
                await self.session.execute(insert(role_permissions), rows)
            if self.commit_on_write:
                await self.session.commit()
        except SQLAlchemyError:
            logger.exception("role_assignment_write_failed", role_id=role_id)
            if self.commit_on_write:
                await self.session.rollback()
            raise

    # ------------------------------------------------------------
    # Structural writes
    # ------------------------------------------------------------

    async def save_permission(self, permission: Permission) -> Permission:
        """Insert or update a permission after validating its parent link.

        Args:
            permission: New or modified permission

        Returns:
            The saved permission with its id populated

        Raises:
            SelfParentError: If the permission would be its own parent
            CycleError: If the new parent is one of its descendants
            PermissionNotFoundError: If the new parent does not exist
        """
        state = inspect(permission)
        # Validation queries must not autoflush the unvalidated parent link
        with self.session.no_autoflush:
            if not state.persistent:
                await self.validator.validate_parent_assignment(None, permission.parent_id)
            else:
                history = state.attrs.parent_id.history
                if history.has_changes():
                    try:
                        await self.validator.validate_parent_assignment(
                            permission.id, permission.parent_id
                        )
                    except AppException:
                        permission.parent_id = history.deleted[0] if history.deleted else None
                        raise

        self.session.add(permission)
        await self._write()
        return permission

    async def _write(self) -> None:
        try:
            await self.session.flush()
            if self.commit_on_write:
                await self.session.commit()
        except SQLAlchemyError:
            if self.commit_on_write:
                await self.session.rollback()
            raise
