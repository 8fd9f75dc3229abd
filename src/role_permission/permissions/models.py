"""Permission system database models.

This module defines the hierarchical RBAC models:
- Permission: A node in the permission tree (module or action)
- Role: A named set of directly assigned permissions
- role_permissions: Association table holding the assignments
"""

from enum import Enum

from sqlalchemy import Column, ForeignKey, Integer, String, Table
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from role_permission.core.constants import (
    MAX_DESCRIPTION_LENGTH,
    MAX_NAME_LENGTH,
    MAX_PERMISSION_KIND_LENGTH,
    MAX_ROUTE_KEY_LENGTH,
    MAX_SLUG_LENGTH,
)
from role_permission.core.database.base import Base, IntegerIDMixin, TimestampMixin


class PermissionKind(str, Enum):
    """Kind of a permission node.

    Modules aggregate visibility from their subtree; actions are
    atomic capabilities that must be granted explicitly.
    """

    MODULE = "module"
    ACTION = "action"


# Junction table for Role <-> Permission assignments
role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column(
        "role_id",
        Integer,
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "permission_id",
        Integer,
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    ),
)


class Permission(Base, IntegerIDMixin, TimestampMixin):
    """A node in the permission tree.

    Attributes:
        name: Display label (e.g., "Stock Management")
        slug: Unique identifier used in checks (e.g., "fmdf.stock")
        description: Optional human-readable description
        parent_id: Parent permission, None for roots
        kind: Module or action
        route_key: Optional opaque route identifier guarded by this permission
        order: Display order among siblings, ascending
        active: Listing flag; inactive permissions still resolve

    Parent links are plain ids rather than ORM relationships so that
    traversal always goes through the store and its cycle guards.
    """

    __tablename__ = "permissions"

    name: Mapped[str] = mapped_column(
        String(MAX_NAME_LENGTH),
        nullable=False,
    )
    slug: Mapped[str] = mapped_column(
        String(MAX_SLUG_LENGTH),
        unique=True,
        nullable=False,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH),
        nullable=True,
    )
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("permissions.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    kind: Mapped[PermissionKind] = mapped_column(
        SAEnum(
            PermissionKind,
            native_enum=False,
            length=MAX_PERMISSION_KIND_LENGTH,
            values_callable=lambda kinds: [kind.value for kind in kinds],
        ),
        default=PermissionKind.MODULE,
        nullable=False,
    )
    route_key: Mapped[str | None] = mapped_column(
        String(MAX_ROUTE_KEY_LENGTH),
        nullable=True,
        index=True,
    )
    order: Mapped[int] = mapped_column(
        default=0,
        nullable=False,
    )
    active: Mapped[bool] = mapped_column(
        default=True,
        nullable=False,
    )

    @property
    def is_module(self) -> bool:
        """Return True if this permission aggregates its subtree."""
        return PermissionKind(self.kind) is PermissionKind.MODULE

    def __repr__(self) -> str:
        return f"<Permission(id={self.id}, slug={self.slug}, kind={self.kind})>"


class Role(Base, IntegerIDMixin, TimestampMixin):
    """Role model holding a set of directly assigned permissions.

    Attributes:
        name: Role name (e.g., "Editor")
        slug: Unique identifier; one configured slug is the master role
        description: Human-readable description of the role
        active: Listing flag
    """

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(
        String(MAX_NAME_LENGTH),
        nullable=False,
    )
    slug: Mapped[str] = mapped_column(
        String(MAX_SLUG_LENGTH),
        unique=True,
        nullable=False,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH),
        nullable=True,
    )
    active: Mapped[bool] = mapped_column(
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, slug={self.slug})>"
