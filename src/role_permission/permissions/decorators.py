"""Permission decorators for guarding coroutines.

The wrapped coroutine must receive the checked role as the ``role``
keyword argument and a ``RolePermissionService`` as ``permissions``.
"""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar, cast

import structlog

from role_permission.core.errors import ForbiddenError


if TYPE_CHECKING:
    from role_permission.permissions.models import Role
    from role_permission.permissions.service import RolePermissionService


logger = structlog.get_logger()

P = ParamSpec("P")
R = TypeVar("R")

Check = Callable[["RolePermissionService", "Role | None"], Awaitable[bool]]


def _get_role_and_service(
    kwargs: dict[str, Any],
) -> tuple["Role | None", "RolePermissionService | None"]:
    """Extract role and permission service from kwargs."""
    role = cast("Role | None", kwargs.get("role"))
    service = cast("RolePermissionService | None", kwargs.get("permissions"))
    return role, service


def _guard(
    check: Check,
    message: str,
    required: list[str],
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            role, service = _get_role_and_service(kwargs)

            if service is None:
                raise ForbiddenError(
                    "Permission check failed",
                    error_code="permission_check_failed",
                )

            if not await check(service, role):
                logger.info(
                    "permission_denied",
                    role_id=role.id if role is not None else None,
                    required=required,
                    function=func.__qualname__,
                )
                raise ForbiddenError(
                    message,
                    error_code="permission_denied",
                    details={"required_permissions": required},
                )

            return await func(*args, **kwargs)

        return wrapper

    return decorator


def require_permission(
    slug: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator that requires a specific permission.

    Usage:
        @require_permission("posts.edit")
        async def edit_post(post_id: int, *, role: Role, permissions: RolePermissionService):
            ...

    Raises:
        ForbiddenError: If the role lacks the permission
    """
    return _guard(
        lambda service, role: service.has_permission(role, slug),
        f"Missing required permission: {slug}",
        [slug],
    )


def require_any_permission(
    slugs: list[str],
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator that requires any one of the specified permissions."""
    return _guard(
        lambda service, role: service.has_any_permission(role, slugs),
        f"Missing required permission. Need one of: {', '.join(slugs)}",
        list(slugs),
    )


def require_all_permissions(
    slugs: list[str],
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator that requires all of the specified permissions."""
    return _guard(
        lambda service, role: service.has_all_permissions(role, slugs),
        f"Missing required permissions: {', '.join(slugs)}",
        list(slugs),
    )


def require_route(
    route_key: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator that requires access to the permission guarding ``route_key``.

    Routes that no permission declares are left open.
    """
    return _guard(
        lambda service, role: service.can_access_route(role, route_key),
        f"Access to route '{route_key}' denied",
        [route_key],
    )
