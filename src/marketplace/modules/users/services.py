"""User service: profile, role assignments and direct grants."""

from typing import Annotated

import structlog
from fastapi import Depends

from marketplace.core.auth.schemas import Principal
from marketplace.core.constants import DEFAULT_PAGE_SIZE
from marketplace.core.errors import NotFoundError, ValidationError
from marketplace.core.permissions.dependencies import Checker
from marketplace.core.permissions.models import UserDocument, UserRoleRef
from marketplace.core.permissions.ownership import ensure_admin_or_owner
from marketplace.core.permissions.resolver import EffectivePermissions
from marketplace.core.schemas import utc_now_iso
from marketplace.modules.users.repos import UserRepo
from marketplace.modules.users.schemas import UserStatusUpdate, UserUpdate


logger = structlog.get_logger()

# A user record is owned by the user it describes
USER_OWNER_FIELD = "id"

DEFAULT_BLOCKED_REASON = "No reason provided"


class UserService:
    """Service for user access-control operations.

    Updates are read-modify-write guarded by the version tag read at
    the start, so two concurrent edits of the same user cannot both
    succeed; the loser gets ``PreconditionFailedError``.
    """

    def __init__(self, repo: UserRepo, checker: Checker) -> None:
        self.repo = repo
        self.checker = checker

    async def _get(self, user_id: str) -> UserDocument:
        user = await self.repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found", resource="user", resource_id=user_id)
        return user

    async def _save(
        self,
        user: UserDocument,
        if_match: str | None,
        updated_by: str | None,
    ) -> UserDocument:
        user.metadata.updated_at = utc_now_iso()
        user.metadata.updated_by = updated_by
        return await self.repo.replace(user, if_match=if_match or user.etag)

    async def get_user(self, user_id: str, principal: Principal) -> UserDocument:
        """Get a user the caller owns or administers.

        Raises:
            NotFoundError: If the user doesn't exist
            ForbiddenError: If the caller is neither the user nor an admin
        """
        user = await self._get(user_id)
        await ensure_admin_or_owner(self.checker, principal, user, USER_OWNER_FIELD)
        return user

    async def update_profile(
        self,
        user_id: str,
        data: UserUpdate,
        principal: Principal,
        if_match: str | None = None,
    ) -> UserDocument:
        """Update profile fields of a user the caller owns or administers.

        Raises:
            NotFoundError: If the user doesn't exist
            ForbiddenError: If the caller is neither the user nor an admin
            PreconditionFailedError: If the user changed concurrently
        """
        user = await self.get_user(user_id, principal)
        changes = data.model_dump(exclude_unset=True)
        user.profile = user.profile.model_copy(update=changes)

        saved = await self._save(user, if_match, principal.id)
        logger.info("user_profile_updated", user_id=user_id, fields=sorted(changes))
        return saved

    async def update_roles(
        self,
        user_id: str,
        roles: list[UserRoleRef],
        if_match: str | None = None,
        updated_by: str | None = None,
    ) -> UserDocument:
        """Replace a user's role assignments.

        Order is kept and repeated roles collapse onto their first
        position. Ids of roles that don't exist are stored anyway; they
        grant nothing until such a role is created.

        Raises:
            ValidationError: If ``roles`` is empty
            NotFoundError: If the user doesn't exist
            PreconditionFailedError: If the user changed concurrently
        """
        if not roles:
            raise ValidationError(
                "A user must keep at least one role",
                error_code="roles_required",
                errors=[{"field": "roles", "message": "Must contain at least one role"}],
            )

        role_ids = list(dict.fromkeys(ref.role_id for ref in roles))
        user = await self._get(user_id)

        existing = await self.checker.calculator.resolver.load_roles(role_ids)
        resolved = {role.id for role in existing}
        unknown = [role_id for role_id in role_ids if role_id not in resolved]
        if unknown:
            logger.warning("user_role_unknown", user_id=user_id, role_ids=unknown)

        user.roles = [UserRoleRef(role_id=role_id) for role_id in role_ids]
        saved = await self._save(user, if_match, updated_by)
        logger.info(
            "user_roles_updated",
            user_id=user_id,
            roles=role_ids,
            updated_by=updated_by,
        )
        return saved

    async def update_permissions(
        self,
        user_id: str,
        custom_permissions: list[str],
        if_match: str | None = None,
        updated_by: str | None = None,
    ) -> UserDocument:
        """Replace a user's direct permission grants (an empty list clears them).

        Raises:
            NotFoundError: If the user doesn't exist
            PreconditionFailedError: If the user changed concurrently
        """
        user = await self._get(user_id)
        user.custom_permissions = list(dict.fromkeys(custom_permissions))

        saved = await self._save(user, if_match, updated_by)
        logger.info(
            "user_permissions_updated",
            user_id=user_id,
            custom_permissions=saved.custom_permissions,
            updated_by=updated_by,
        )
        return saved

    async def list_users(
        self,
        email: str | None = None,
        is_active: bool | None = None,
        blocked: bool | None = None,
        role_id: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: str | None = None,
    ) -> tuple[list[UserDocument], str | None]:
        """List users, filtered by email, status flags and role."""
        return await self.repo.list_page(email, is_active, blocked, role_id, limit, cursor)

    async def update_status(
        self,
        user_id: str,
        data: UserStatusUpdate,
        if_match: str | None = None,
        updated_by: str | None = None,
    ) -> UserDocument:
        """Activate, deactivate, block or unblock a user.

        A blocked or inactive user is refused at authentication on its
        next request.

        Raises:
            NotFoundError: If the user doesn't exist
            PreconditionFailedError: If the user changed concurrently
        """
        user = await self._get(user_id)
        status = user.status

        if data.is_active is not None:
            status.is_active = data.is_active
        if data.blocked is not None:
            status.blocked = data.blocked
            if data.blocked:
                status.blocked_at = utc_now_iso()
                status.blocked_reason = data.blocked_reason or DEFAULT_BLOCKED_REASON
            else:
                status.blocked_at = None
                status.blocked_reason = None

        saved = await self._save(user, if_match, updated_by)
        logger.info(
            "user_status_updated",
            user_id=user_id,
            is_active=saved.status.is_active,
            blocked=saved.status.blocked,
            updated_by=updated_by,
        )
        return saved

    async def get_effective_permissions(
        self,
        user_id: str,
        principal: Principal,
    ) -> EffectivePermissions:
        """Effective permissions of a user the caller owns or administers.

        Raises:
            NotFoundError: If the user doesn't exist
            ForbiddenError: If the caller is neither the user nor an admin
        """
        user = await self.get_user(user_id, principal)
        return await self.checker.calculator.compute_for_user(user)


# Type alias for dependency injection
UserSvc = Annotated[UserService, Depends(UserService)]
