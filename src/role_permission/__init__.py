"""Hierarchical role/permission authorization core."""

from role_permission.config import Settings, get_settings
from role_permission.core.errors import (
    CycleError,
    ForbiddenError,
    HierarchyIntegrityError,
    InvalidAssignmentError,
    PermissionNotFoundError,
    SelfParentError,
)
from role_permission.permissions import (
    Decision,
    Permission,
    PermissionKind,
    Role,
    RolePermissionService,
)


__version__ = "0.1.0"

__all__ = [
    "CycleError",
    "Decision",
    "ForbiddenError",
    "HierarchyIntegrityError",
    "InvalidAssignmentError",
    "Permission",
    "PermissionKind",
    "PermissionNotFoundError",
    "Role",
    "RolePermissionService",
    "SelfParentError",
    "Settings",
    "get_settings",
]
