"""User API routes.

Profile reads and edits follow the admin-or-owner rule; role and
direct permission assignment requires ``perm_assign_roles``. Listing
users and changing account status requires ``perm_manage_users``.
"""

from fastapi import Query

from marketplace.api.dependencies import IfMatch, Store
from marketplace.core.auth.dependencies import CurrentUser
from marketplace.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from marketplace.core.permissions.catalog import PERM_ASSIGN_ROLES, PERM_MANAGE_USERS
from marketplace.core.permissions.decorators import require_permission
from marketplace.core.permissions.models import UserDocument
from marketplace.modules.rbac.schemas import EffectivePermissionsResponse
from marketplace.modules.users import router
from marketplace.modules.users.schemas import (
    UserListResponse,
    UserPermissionsUpdate,
    UserRolesUpdate,
    UserStatusUpdate,
    UserUpdate,
)
from marketplace.modules.users.services import UserSvc


@router.get(
    "",
    response_model=UserListResponse,
    summary="List users",
    description="List users, filtered by email, status flags and role.",
)
@require_permission(PERM_MANAGE_USERS)
async def list_users(
    service: UserSvc,
    current_user: CurrentUser,
    store: Store,
    email: str | None = Query(None, description="Email address"),
    is_active: bool | None = Query(None, alias="isActive"),
    blocked: bool | None = Query(None),
    role_id: str | None = Query(None, alias="roleId"),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    cursor: str | None = Query(None, description="Continuation token"),
) -> UserListResponse:
    """List users."""
    users, next_cursor = await service.list_users(
        email, is_active, blocked, role_id, limit, cursor
    )
    return UserListResponse(items=users, next_cursor=next_cursor)


@router.get(
    "/me",
    response_model=UserDocument,
    summary="Get current user",
    description="Returns the authenticated user's record.",
)
async def get_me(current_user: CurrentUser, service: UserSvc) -> UserDocument:
    """Get current user."""
    return await service.get_user(current_user.id, current_user)


@router.get(
    "/{user_id}",
    response_model=UserDocument,
    summary="Get user by ID",
    description="Readable by the user and by administrators.",
)
async def get_user(
    user_id: str,
    service: UserSvc,
    current_user: CurrentUser,
) -> UserDocument:
    """Get user by ID."""
    return await service.get_user(user_id, current_user)


@router.patch(
    "/{user_id}",
    response_model=UserDocument,
    summary="Update user",
    description="Update profile fields. Allowed for the user and administrators.",
)
async def update_user(
    user_id: str,
    data: UserUpdate,
    service: UserSvc,
    current_user: CurrentUser,
    if_match: IfMatch,
) -> UserDocument:
    """Update a user's profile."""
    return await service.update_profile(user_id, data, current_user, if_match)


@router.patch(
    "/{user_id}/roles",
    response_model=UserDocument,
    summary="Update user roles",
    description="Replace the user's role assignments. At least one role is required.",
)
@require_permission(PERM_ASSIGN_ROLES)
async def update_user_roles(
    user_id: str,
    data: UserRolesUpdate,
    service: UserSvc,
    current_user: CurrentUser,
    store: Store,
    if_match: IfMatch,
) -> UserDocument:
    """Replace a user's roles."""
    return await service.update_roles(
        user_id, data.roles, if_match=if_match, updated_by=current_user.id
    )


@router.patch(
    "/{user_id}/permissions",
    response_model=UserDocument,
    summary="Update user permissions",
    description="Replace the user's direct permission grants.",
)
@require_permission(PERM_ASSIGN_ROLES)
async def update_user_permissions(
    user_id: str,
    data: UserPermissionsUpdate,
    service: UserSvc,
    current_user: CurrentUser,
    store: Store,
    if_match: IfMatch,
) -> UserDocument:
    """Replace a user's direct permissions."""
    return await service.update_permissions(
        user_id, data.custom_permissions, if_match=if_match, updated_by=current_user.id
    )


@router.get(
    "/{user_id}/effective-permissions",
    response_model=EffectivePermissionsResponse,
    summary="Get effective permissions",
    description="Roles, direct grants and their union for a user.",
)
async def get_effective_permissions(
    user_id: str,
    service: UserSvc,
    current_user: CurrentUser,
) -> EffectivePermissionsResponse:
    """Effective permissions of a user."""
    snapshot = await service.get_effective_permissions(user_id, current_user)
    return EffectivePermissionsResponse.from_snapshot(snapshot)


@router.patch(
    "/{user_id}/status",
    response_model=UserDocument,
    summary="Update user status",
    description="Activate, deactivate, block or unblock a user.",
)
@require_permission(PERM_MANAGE_USERS)
async def update_user_status(
    user_id: str,
    data: UserStatusUpdate,
    service: UserSvc,
    current_user: CurrentUser,
    store: Store,
    if_match: IfMatch,
) -> UserDocument:
    """Change a user's account status."""
    return await service.update_status(
        user_id, data, if_match=if_match, updated_by=current_user.id
    )
