"""Route decorators that gate handlers on permissions or roles.

The wrapped handler must declare ``current_user`` (the request
``Principal``) and ``db`` (or ``store``) parameters; the decorators read
them from the handler's keyword arguments and reject the request before
the handler body runs.
"""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

import structlog

from marketplace.core.database import DocumentStore
from marketplace.core.errors import ForbiddenError, UnauthorizedError
from marketplace.core.permissions.checker import PermissionChecker


if TYPE_CHECKING:
    from fastapi import Request

    from marketplace.core.auth.schemas import Principal


logger = structlog.get_logger()

P = ParamSpec("P")
R = TypeVar("R")


def _get_principal_and_store(
    kwargs: dict[str, Any],
) -> tuple["Principal", DocumentStore, "Request | None"]:
    """Pull the principal, a document store and the request from kwargs.

    Raises:
        UnauthorizedError: If no principal was resolved
        ForbiddenError: If the handler exposes no database access
    """
    principal = kwargs.get("current_user")
    if principal is None:
        raise UnauthorizedError(
            "Authentication required",
            error_code="auth_required",
        )

    store = kwargs.get("store")
    if store is None and kwargs.get("db") is not None:
        store = DocumentStore(kwargs["db"])
    if store is None:
        raise ForbiddenError(
            "Permission check failed",
            error_code="permission_check_failed",
        )

    return principal, store, kwargs.get("request")


def _gate(
    permissions: list[str],
    require_all: bool,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            principal, store, request = _get_principal_and_store(kwargs)

            # One snapshot for all requested permissions
            snapshot = await PermissionChecker(store).principal_snapshot(principal)
            held = [permission in snapshot for permission in permissions]
            allowed = all(held) if require_all else any(held)

            if not allowed:
                logger.warning(
                    "permission_denied",
                    principal_id=principal.id,
                    required_permissions=permissions,
                    require_all=require_all,
                    endpoint=request.url.path if request else func.__name__,
                )
                if require_all:
                    message = f"Missing required permissions: {', '.join(permissions)}"
                else:
                    message = (
                        f"Missing required permission. Need one of: {', '.join(permissions)}"
                    )
                raise ForbiddenError(
                    message,
                    error_code="permission_denied",
                    details={"required_permissions": permissions},
                )

            return await func(*args, **kwargs)

        return wrapper

    return decorator


def require_permission(
    permission_id: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Require a single permission to access a route.

    Usage:
        @router.delete("/roles/{role_id}")
        @require_permission("perm_assign_roles")
        async def delete_role(role_id: str, current_user: CurrentUser, db: DBSession):
            ...

    Raises:
        ForbiddenError: If the caller lacks the permission
    """
    return _gate([permission_id], require_all=True)


def require_any_permission(
    permissions: list[str],
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Require at least one of ``permissions``."""
    return _gate(list(permissions), require_all=False)


def require_all_permissions(
    permissions: list[str],
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Require every one of ``permissions``."""
    return _gate(list(permissions), require_all=True)


def require_role(
    *role_ids: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Require the caller to be assigned at least one of ``role_ids``.

    Membership is flat: roles do not inherit from each other.

    Usage:
        @router.get("/moderation/queue")
        @require_role("role_moderator", "role_admin")
        async def moderation_queue(current_user: CurrentUser):
            ...
    """
    required = list(role_ids)

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            principal = kwargs.get("current_user")
            if principal is None:
                raise UnauthorizedError(
                    "Authentication required",
                    error_code="auth_required",
                )

            if not principal.has_role(*required):
                logger.warning(
                    "role_denied",
                    principal_id=principal.id,
                    required_roles=required,
                )
                raise ForbiddenError(
                    f"Requires one of the roles: {', '.join(required)}",
                    error_code="role_required",
                    details={"required_roles": required},
                )

            return await func(*args, **kwargs)

        return wrapper

    return decorator
