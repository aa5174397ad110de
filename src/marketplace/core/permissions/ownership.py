"""Admin-or-owner access rule.

A resource-scoped operation is allowed when the caller owns the
resource (its owner field equals the caller's id) or holds the
administrative permission. Every resource type goes through these
two functions.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from marketplace.config import settings
from marketplace.core.errors import ForbiddenError


if TYPE_CHECKING:
    from marketplace.core.auth.schemas import Principal
    from marketplace.core.permissions.checker import PermissionChecker


logger = structlog.get_logger()

DEFAULT_OWNER_FIELD = "userId"


def resource_owner(resource: Any, owner_field: str = DEFAULT_OWNER_FIELD) -> str | None:
    """Read the owner id from a document (mapping) or model (attribute)."""
    if isinstance(resource, Mapping):
        owner = resource.get(owner_field)
    else:
        owner = getattr(resource, owner_field, None)
    return str(owner) if owner is not None else None


async def is_admin_or_owner(
    checker: "PermissionChecker",
    principal: "Principal",
    resource: Any,
    owner_field: str = DEFAULT_OWNER_FIELD,
    admin_permission: str | None = None,
) -> bool:
    """Whether ``principal`` owns ``resource`` or holds the admin permission.

    Args:
        checker: Decision point used for the admin permission
        principal: The caller
        resource: The fetched resource (document dict or model)
        owner_field: Field on the resource holding the owner's user id
        admin_permission: Permission granting access regardless of owner;
            defaults to ``settings.admin_permission``
    """
    if resource_owner(resource, owner_field) == principal.id:
        return True
    return await checker.principal_has_permission(
        principal,
        admin_permission or settings.admin_permission,
    )


async def ensure_admin_or_owner(
    checker: "PermissionChecker",
    principal: "Principal",
    resource: Any,
    owner_field: str = DEFAULT_OWNER_FIELD,
    admin_permission: str | None = None,
) -> None:
    """Raise ``ForbiddenError`` unless ``is_admin_or_owner`` holds."""
    if await is_admin_or_owner(
        checker, principal, resource, owner_field, admin_permission
    ):
        return

    logger.warning(
        "access_denied",
        principal_id=principal.id,
        owner=resource_owner(resource, owner_field),
        rule="admin_or_owner",
    )
    raise ForbiddenError(
        "Only the owner or an administrator can access this resource",
        error_code="not_owner_or_admin",
    )
