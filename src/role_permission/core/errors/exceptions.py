"""Domain exceptions for the authorization core.

Structural and assignment errors are propagated to the administrative
caller. Permission checks never raise for unknown slugs; they deny.
"""

from collections.abc import Iterable
from typing import Any


class AppException(Exception):
    """Base exception for all role-permission errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for clients
        details: Additional error details
    """

    message: str = "An unexpected error occurred"
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


class CycleError(AppException):
    """Raised when a parent assignment would create a cycle in the hierarchy.

    Example:
        raise CycleError(details={"permission_id": 3, "parent_id": 7})
    """

    message = "Circular reference detected: cannot set a descendant as parent"
    error_code = "circular_reference"


class SelfParentError(CycleError):
    """Raised when a permission is made its own parent."""

    message = "Permission cannot be its own parent"
    error_code = "self_parent"


class InvalidAssignmentError(AppException):
    """Raised when a sync request references permissions that do not exist.

    Example:
        raise InvalidAssignmentError(missing_ids={41, 42})
    """

    message = "Invalid permission assignment"
    error_code = "invalid_permission_assignment"

    def __init__(
        self,
        message: str | None = None,
        missing_ids: Iterable[int] | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        self.missing_ids = sorted(missing_ids or [])
        if self.missing_ids:
            details["missing_ids"] = self.missing_ids
            message = message or (
                "Unknown permission ids: " + ", ".join(str(i) for i in self.missing_ids)
            )
        super().__init__(message=message, details=details, **kwargs)


class PermissionNotFoundError(AppException):
    """Raised when a structural operation names a permission that does not exist.

    Example:
        raise PermissionNotFoundError(permission_id=12)
    """

    message = "Permission not found"
    error_code = "permission_not_found"

    def __init__(
        self,
        message: str | None = None,
        permission_id: int | None = None,
        slug: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if permission_id is not None:
            details["permission_id"] = permission_id
            message = message or f"Permission with id {permission_id} not found"
        if slug is not None:
            details["slug"] = slug
            message = message or f"Permission with slug '{slug}' not found"
        super().__init__(message=message, details=details, **kwargs)


class HierarchyIntegrityError(AppException):
    """Raised when the stored hierarchy already contains a cycle."""

    message = "Permission hierarchy is corrupt: cycle detected in stored parent links"
    error_code = "hierarchy_integrity"


class ForbiddenError(AppException):
    """Raised when a role lacks the permission a guarded call requires.

    Example:
        raise ForbiddenError(
            "Missing required permission",
            details={"required_permissions": ["posts.edit"]},
        )
    """

    message = "Access forbidden"
    error_code = "forbidden"


class CacheBackendError(AppException):
    """Raised by cache backends when the cache cannot be reached.

    Never escapes a permission check; the resolution cache degrades
    to direct computation instead.
    """

    message = "Cache backend unavailable"
    error_code = "cache_unavailable"
