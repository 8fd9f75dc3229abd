"""Error handling module."""

from role_permission.core.errors.exceptions import (
    AppException,
    CacheBackendError,
    CycleError,
    ForbiddenError,
    HierarchyIntegrityError,
    InvalidAssignmentError,
    PermissionNotFoundError,
    SelfParentError,
)


__all__ = [
    "AppException",
    "CacheBackendError",
    "CycleError",
    "ForbiddenError",
    "HierarchyIntegrityError",
    "InvalidAssignmentError",
    "PermissionNotFoundError",
    "SelfParentError",
]
