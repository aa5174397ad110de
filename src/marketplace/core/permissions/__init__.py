"""Role-based access control: resolution, decisions and route gating."""

from marketplace.core.permissions.checker import (
    PermissionCheck,
    PermissionChecker,
    evaluate,
)
from marketplace.core.permissions.decorators import (
    require_all_permissions,
    require_any_permission,
    require_permission,
    require_role,
)
from marketplace.core.permissions.ownership import (
    ensure_admin_or_owner,
    is_admin_or_owner,
)
from marketplace.core.permissions.resolver import (
    EffectivePermissionCalculator,
    EffectivePermissions,
    RoleResolver,
)


__all__ = [
    "EffectivePermissionCalculator",
    "EffectivePermissions",
    "PermissionCheck",
    "PermissionChecker",
    "RoleResolver",
    "ensure_admin_or_owner",
    "evaluate",
    "is_admin_or_owner",
    "require_all_permissions",
    "require_any_permission",
    "require_permission",
    "require_role",
]
