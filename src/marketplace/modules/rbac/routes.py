"""RBAC API routes.

Catalog administration requires ``perm_assign_roles``. Permission
checks for another user follow the admin-or-owner rule.
"""

from fastapi import Query, status

from marketplace.api.dependencies import IfMatch, Store
from marketplace.core.auth.dependencies import CurrentUser
from marketplace.core.constants import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_SUGGESTION_LIMIT,
    MAX_PAGE_SIZE,
    MAX_SUGGESTION_LIMIT,
)
from marketplace.core.permissions.catalog import PERM_ASSIGN_ROLES
from marketplace.core.permissions.decorators import require_permission
from marketplace.core.permissions.dependencies import Checker
from marketplace.core.permissions.models import PermissionDocument, RoleDocument
from marketplace.core.permissions.ownership import ensure_admin_or_owner
from marketplace.modules.rbac import router
from marketplace.modules.rbac.schemas import (
    BatchPermissionCheckResponse,
    CategoriesResponse,
    CheckPermissionRequest,
    CheckPermissionsBatchRequest,
    EffectivePermissionsResponse,
    PermissionCheckResponse,
    PermissionCreate,
    PermissionListResponse,
    PermissionSuggestion,
    PermissionUpdate,
    RoleCreate,
    RoleListResponse,
    RolePermissionsUpdate,
    RoleSuggestion,
    RoleUpdate,
)
from marketplace.modules.rbac.services import PermissionSvc, RoleSvc


# ============================================================
# Roles
# ============================================================


@router.get(
    "/roles",
    response_model=RoleListResponse,
    summary="List roles",
    description="List roles, filtered by scope and name, one page at a time.",
)
@require_permission(PERM_ASSIGN_ROLES)
async def list_roles(
    service: RoleSvc,
    current_user: CurrentUser,
    store: Store,
    scope: str | None = Query(None, description="Role scope"),
    name: str | None = Query(None, description="Name substring"),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    cursor: str | None = Query(None, description="Continuation token"),
) -> RoleListResponse:
    """List roles."""
    roles, next_cursor = await service.list_roles(scope, name, limit, cursor)
    return RoleListResponse(items=roles, next_cursor=next_cursor)


@router.post(
    "/roles",
    response_model=RoleDocument,
    status_code=status.HTTP_201_CREATED,
    summary="Create role",
)
@require_permission(PERM_ASSIGN_ROLES)
async def create_role(
    data: RoleCreate,
    service: RoleSvc,
    current_user: CurrentUser,
    store: Store,
) -> RoleDocument:
    """Create a role."""
    return await service.create_role(data)


@router.get(
    "/roles/suggest",
    response_model=list[RoleSuggestion],
    summary="Suggest roles",
    description="Best matching roles for a search box.",
)
async def suggest_roles(
    service: RoleSvc,
    current_user: CurrentUser,  # noqa: ARG001 - required for auth
    query: str | None = Query(None, description="Search text"),
    limit: int = Query(DEFAULT_SUGGESTION_LIMIT, ge=1, le=MAX_SUGGESTION_LIMIT),
) -> list[RoleSuggestion]:
    """Suggest roles."""
    return [
        RoleSuggestion(
            id=role.id,
            name=role.name,
            description=role.description,
            permission_count=len(role.permissions),
            permissions=role.permission_ids,
        )
        for role in await service.suggest(query, limit)
    ]


@router.get("/roles/{role_id}", response_model=RoleDocument, summary="Get role")
@require_permission(PERM_ASSIGN_ROLES)
async def get_role(
    role_id: str,
    service: RoleSvc,
    current_user: CurrentUser,
    store: Store,
) -> RoleDocument:
    """Get a role by id."""
    return await service.get_role(role_id)


@router.patch("/roles/{role_id}", response_model=RoleDocument, summary="Update role")
@require_permission(PERM_ASSIGN_ROLES)
async def update_role(
    role_id: str,
    data: RoleUpdate,
    service: RoleSvc,
    current_user: CurrentUser,
    store: Store,
    if_match: IfMatch,
) -> RoleDocument:
    """Update a role's description or permission list."""
    return await service.update_role(role_id, data, if_match)


@router.delete(
    "/roles/{role_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete role",
    description="Delete a custom role. Built-in roles cannot be deleted.",
)
@require_permission(PERM_ASSIGN_ROLES)
async def delete_role(
    role_id: str,
    service: RoleSvc,
    current_user: CurrentUser,
    store: Store,
) -> None:
    """Delete a role."""
    await service.delete_role(role_id)


@router.get(
    "/roles/{role_id}/permissions",
    response_model=list[PermissionDocument],
    summary="Get role permissions",
    description="Full permission documents for a role.",
)
@require_permission(PERM_ASSIGN_ROLES)
async def get_role_permissions(
    role_id: str,
    service: RoleSvc,
    current_user: CurrentUser,
    store: Store,
) -> list[PermissionDocument]:
    """List a role's permissions."""
    return await service.get_role_permissions(role_id)


@router.post(
    "/roles/{role_id}/permissions",
    response_model=RoleDocument,
    summary="Attach permissions",
    description="Add permissions to a role, keeping the ones it already has.",
)
@require_permission(PERM_ASSIGN_ROLES)
async def attach_permissions(
    role_id: str,
    data: RolePermissionsUpdate,
    service: RoleSvc,
    current_user: CurrentUser,
    store: Store,
    if_match: IfMatch,
) -> RoleDocument:
    """Attach permissions to a role."""
    return await service.attach_permissions(role_id, data.permission_ids, if_match)


@router.put(
    "/roles/{role_id}/permissions",
    response_model=RoleDocument,
    summary="Set permissions",
    description="Replace the role's permission list.",
)
@require_permission(PERM_ASSIGN_ROLES)
async def set_permissions(
    role_id: str,
    data: RolePermissionsUpdate,
    service: RoleSvc,
    current_user: CurrentUser,
    store: Store,
    if_match: IfMatch,
) -> RoleDocument:
    """Replace a role's permissions."""
    return await service.set_role_permissions(role_id, data.permission_ids, if_match)


@router.delete(
    "/roles/{role_id}/permissions/{permission_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Detach permission",
)
@require_permission(PERM_ASSIGN_ROLES)
async def detach_permission(
    role_id: str,
    permission_id: str,
    service: RoleSvc,
    current_user: CurrentUser,
    store: Store,
    if_match: IfMatch,
) -> None:
    """Remove a permission from a role."""
    await service.detach_permission(role_id, permission_id, if_match)


# ============================================================
# Permissions
# ============================================================


@router.get(
    "/permissions",
    response_model=PermissionListResponse,
    summary="List permissions",
    description="List permissions, filtered by category and name prefix.",
)
@require_permission(PERM_ASSIGN_ROLES)
async def list_permissions(
    service: PermissionSvc,
    current_user: CurrentUser,
    store: Store,
    category: str | None = Query(None, description="Category"),
    name: str | None = Query(None, description="Name prefix"),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    cursor: str | None = Query(None, description="Continuation token"),
) -> PermissionListResponse:
    """List permissions."""
    permissions, next_cursor = await service.list_permissions(category, name, limit, cursor)
    return PermissionListResponse(items=permissions, next_cursor=next_cursor)


@router.post(
    "/permissions",
    response_model=PermissionDocument,
    status_code=status.HTTP_201_CREATED,
    summary="Create permission",
)
@require_permission(PERM_ASSIGN_ROLES)
async def create_permission(
    data: PermissionCreate,
    service: PermissionSvc,
    current_user: CurrentUser,
    store: Store,
) -> PermissionDocument:
    """Create a permission."""
    return await service.create_permission(data)


@router.get(
    "/permissions/categories",
    response_model=CategoriesResponse,
    summary="List permission categories",
)
async def get_permission_categories(
    service: PermissionSvc,
    current_user: CurrentUser,  # noqa: ARG001 - required for auth
) -> CategoriesResponse:
    """Distinct permission categories."""
    return CategoriesResponse(categories=await service.get_categories())


@router.get(
    "/permissions/suggest",
    response_model=list[PermissionSuggestion],
    summary="Suggest permissions",
    description="Best matching permissions for a search box.",
)
async def suggest_permissions(
    service: PermissionSvc,
    current_user: CurrentUser,  # noqa: ARG001 - required for auth
    query: str | None = Query(None, description="Search text"),
    limit: int = Query(DEFAULT_SUGGESTION_LIMIT, ge=1, le=MAX_SUGGESTION_LIMIT),
) -> list[PermissionSuggestion]:
    """Suggest permissions."""
    return [
        PermissionSuggestion(
            id=permission.id,
            name=permission.name,
            description=permission.description,
            category=permission.category,
        )
        for permission in await service.search(query, limit)
    ]


@router.get(
    "/permissions/{permission_id}",
    response_model=PermissionDocument,
    summary="Get permission",
)
@require_permission(PERM_ASSIGN_ROLES)
async def get_permission(
    permission_id: str,
    service: PermissionSvc,
    current_user: CurrentUser,
    store: Store,
) -> PermissionDocument:
    """Get a permission by id."""
    return await service.get_permission(permission_id)


@router.patch(
    "/permissions/{permission_id}",
    response_model=PermissionDocument,
    summary="Update permission",
)
@require_permission(PERM_ASSIGN_ROLES)
async def update_permission(
    permission_id: str,
    data: PermissionUpdate,
    service: PermissionSvc,
    current_user: CurrentUser,
    store: Store,
    if_match: IfMatch,
) -> PermissionDocument:
    """Update a permission."""
    return await service.update_permission(permission_id, data, if_match)


@router.delete(
    "/permissions/{permission_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete permission",
    description="Delete a permission that no role references.",
)
@require_permission(PERM_ASSIGN_ROLES)
async def delete_permission(
    permission_id: str,
    service: PermissionSvc,
    current_user: CurrentUser,
    store: Store,
) -> None:
    """Delete a permission."""
    await service.delete_permission(permission_id)


# ============================================================
# Permission checks
# ============================================================


@router.post(
    "/check",
    response_model=PermissionCheckResponse,
    summary="Check permission",
    description="Whether a user holds a permission, and through what.",
)
async def check_permission(
    data: CheckPermissionRequest,
    checker: Checker,
    current_user: CurrentUser,
) -> PermissionCheckResponse:
    """Check one permission for a user."""
    await ensure_admin_or_owner(checker, current_user, {"userId": data.user_id})
    result = await checker.check_permission(data.user_id, data.permission)
    return PermissionCheckResponse.from_check(data.user_id, result)


@router.post(
    "/check/batch",
    response_model=BatchPermissionCheckResponse,
    summary="Check permissions",
    description="Check several permissions against one snapshot of the user.",
)
async def check_permissions_batch(
    data: CheckPermissionsBatchRequest,
    checker: Checker,
    current_user: CurrentUser,
) -> BatchPermissionCheckResponse:
    """Check several permissions for a user."""
    await ensure_admin_or_owner(checker, current_user, {"userId": data.user_id})
    results = await checker.check_permissions_batch(data.user_id, data.permissions)
    return BatchPermissionCheckResponse(
        user_id=data.user_id,
        permissions={
            permission: PermissionCheckResponse.from_check(data.user_id, result)
            for permission, result in results.items()
        },
    )


@router.get(
    "/me/permissions",
    response_model=EffectivePermissionsResponse,
    summary="Get my permissions",
    description="Effective permissions of the caller.",
)
async def get_my_permissions(
    checker: Checker,
    current_user: CurrentUser,
) -> EffectivePermissionsResponse:
    """Effective permissions of the current user."""
    snapshot = await checker.get_effective_permissions(current_user.id)
    return EffectivePermissionsResponse.from_snapshot(snapshot)
