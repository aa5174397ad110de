"""Request and response schemas for the rbac module.

Payloads carry shape only; catalog rules (identifier patterns, text
lengths) are enforced by the services so every caller gets the same
``ValidationError``.
"""

from typing import Literal

from pydantic import ConfigDict, Field

from marketplace.core.constants import ROLE_SCOPE_SYSTEM
from marketplace.core.permissions.checker import PermissionCheck
from marketplace.core.permissions.models import (
    PermissionDocument,
    RoleDocument,
    RolePermission,
)
from marketplace.core.permissions.resolver import EffectivePermissions
from marketplace.core.schemas import CamelModel


class RequestModel(CamelModel):
    """Incoming payload: surrounding whitespace is stripped."""

    model_config = ConfigDict(str_strip_whitespace=True)


# ============================================================
# Permissions
# ============================================================


class PermissionCreate(RequestModel):
    """Schema for creating a permission (id generated from name if absent)."""

    id: str | None = None
    category: str
    name: str
    description: str


class PermissionUpdate(RequestModel):
    """Schema for a partial permission update."""

    category: str | None = None
    name: str | None = None
    description: str | None = None


class PermissionListResponse(CamelModel):
    items: list[PermissionDocument]
    next_cursor: str | None = None


class CategoriesResponse(CamelModel):
    categories: list[str]


class PermissionSuggestion(CamelModel):
    id: str
    name: str
    description: str
    category: str


# ============================================================
# Roles
# ============================================================


class RoleCreate(RequestModel):
    """Schema for creating a role (id generated from name if absent)."""

    id: str | None = None
    scope: Literal["system"] = ROLE_SCOPE_SYSTEM
    name: str
    description: str = ""
    permissions: list[RolePermission] = Field(default_factory=list)


class RoleUpdate(RequestModel):
    """Schema for updating a role; ``permissions`` replaces the whole list."""

    description: str | None = None
    permissions: list[RolePermission] | None = None


class RolePermissionsUpdate(RequestModel):
    """Permission ids for set-membership and attach operations."""

    permission_ids: list[str]


class RoleListResponse(CamelModel):
    items: list[RoleDocument]
    next_cursor: str | None = None


class RoleSuggestion(CamelModel):
    id: str
    name: str
    description: str
    permission_count: int
    permissions: list[str]


# ============================================================
# Permission checks
# ============================================================


class CheckPermissionRequest(RequestModel):
    user_id: str = Field(..., min_length=1)
    permission: str = Field(..., min_length=1)


class CheckPermissionsBatchRequest(RequestModel):
    """Batch check; an empty list is rejected by the decision point."""

    user_id: str = Field(..., min_length=1)
    permissions: list[str]


class PermissionCheckResponse(CamelModel):
    user_id: str
    permission: str
    has_permission: bool
    source: Literal["direct", "role", "none"]
    role_id: str | None = None

    @classmethod
    def from_check(cls, user_id: str, check: PermissionCheck) -> "PermissionCheckResponse":
        return cls(
            user_id=user_id,
            permission=check.permission,
            has_permission=check.has_permission,
            source=check.source,
            role_id=check.role_id,
        )


class BatchPermissionCheckResponse(CamelModel):
    user_id: str
    permissions: dict[str, PermissionCheckResponse]


class RoleSummary(CamelModel):
    id: str
    name: str
    permissions: list[str]


class EffectivePermissionsResponse(CamelModel):
    """Everything a user holds, for client-side capability caches.

    ``role_ids`` lists every assignment; ``roles`` only those that
    resolved to an existing role.
    """

    user_id: str
    role_ids: list[str]
    roles: list[RoleSummary]
    custom_permissions: list[str]
    effective_permissions: list[str]

    @classmethod
    def from_snapshot(cls, snapshot: EffectivePermissions) -> "EffectivePermissionsResponse":
        return cls(
            user_id=snapshot.user_id,
            role_ids=list(snapshot.roles),
            roles=[
                RoleSummary(id=role.id, name=role.name, permissions=role.permission_ids)
                for role in snapshot.resolved_roles
            ],
            custom_permissions=sorted(snapshot.custom_permissions),
            effective_permissions=sorted(snapshot.effective_permissions),
        )
