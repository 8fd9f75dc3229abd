"""Hierarchical permission system for role-based access control (RBAC)."""

from role_permission.permissions.checker import Decision, PermissionResolver
from role_permission.permissions.decorators import (
    require_all_permissions,
    require_any_permission,
    require_permission,
    require_route,
)
from role_permission.permissions.hierarchy import HierarchyResolver, HierarchyValidator
from role_permission.permissions.models import (
    Permission,
    PermissionKind,
    Role,
    role_permissions,
)
from role_permission.permissions.service import RolePermissionService
from role_permission.permissions.store import PermissionStore, SQLAlchemyPermissionStore
from role_permission.permissions.sync import AssignmentSynchronizer


__all__ = [
    # Checker
    "AssignmentSynchronizer",
    "Decision",
    "HierarchyResolver",
    "HierarchyValidator",
    # Models
    "Permission",
    "PermissionKind",
    "PermissionResolver",
    "PermissionStore",
    "Role",
    "RolePermissionService",
    "SQLAlchemyPermissionStore",
    # Decorators
    "require_all_permissions",
    "require_any_permission",
    "require_permission",
    "require_route",
    "role_permissions",
]
