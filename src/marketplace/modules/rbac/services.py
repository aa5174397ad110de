"""Permission and role catalog services."""

import re
from collections.abc import Iterable
from typing import Annotated, Any

import structlog
from fastapi import Depends

from marketplace.core.constants import (
    DEFAULT_SUGGESTION_LIMIT,
    MAX_ATTACH_PERMISSIONS,
    MAX_CATEGORY_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_IDENTIFIER_LENGTH,
    MAX_PERMISSION_NAME_LENGTH,
    MAX_ROLE_NAME_LENGTH,
    MAX_SUGGESTION_LIMIT,
    MIN_CATALOG_TEXT_LENGTH,
    PERMISSION_ID_PATTERN,
    PERMISSION_ID_PREFIX,
    ROLE_ID_PATTERN,
    ROLE_ID_PREFIX,
    ROLE_SCOPE_SYSTEM,
)
from marketplace.core.errors import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from marketplace.core.permissions.catalog import PROTECTED_ROLES
from marketplace.core.permissions.models import (
    PermissionDocument,
    RoleDocument,
    RolePermission,
)
from marketplace.core.schemas import utc_now_iso
from marketplace.core.utils.search import RankedMatches
from marketplace.core.utils.text import generate_identifier
from marketplace.modules.rbac.repos import PermissionRepo, RoleRepo
from marketplace.modules.rbac.schemas import (
    PermissionCreate,
    PermissionUpdate,
    RoleCreate,
    RoleUpdate,
)


logger = structlog.get_logger()


# ============================================================
# Field validation
# ============================================================


def _text_error(
    field: str,
    value: str | None,
    min_length: int,
    max_length: int,
) -> dict[str, Any] | None:
    if value is None or not value.strip():
        return {"field": field, "message": "Must not be blank"}
    if not min_length <= len(value) <= max_length:
        return {
            "field": field,
            "message": f"Must be between {min_length} and {max_length} characters",
        }
    return None


def _identifier_error(field: str, value: str, pattern: str) -> dict[str, Any] | None:
    if len(value) > MAX_IDENTIFIER_LENGTH or not re.fullmatch(pattern, value):
        return {
            "field": field,
            "message": f"Must match {pattern} and be at most "
            f"{MAX_IDENTIFIER_LENGTH} characters",
        }
    return None


def _raise_if_errors(errors: Iterable[dict[str, Any] | None], message: str) -> None:
    found = [error for error in errors if error]
    if found:
        raise ValidationError(message, errors=found)


def validate_permission(permission: PermissionDocument) -> None:
    """Enforce catalog rules on a permission document.

    Raises:
        ValidationError: Listing every offending field
    """
    _raise_if_errors(
        [
            _identifier_error("id", permission.id, PERMISSION_ID_PATTERN),
            _text_error(
                "category",
                permission.category,
                MIN_CATALOG_TEXT_LENGTH,
                MAX_CATEGORY_LENGTH,
            ),
            _text_error(
                "name",
                permission.name,
                MIN_CATALOG_TEXT_LENGTH,
                MAX_PERMISSION_NAME_LENGTH,
            ),
            _text_error(
                "description",
                permission.description,
                MIN_CATALOG_TEXT_LENGTH,
                MAX_DESCRIPTION_LENGTH,
            ),
        ],
        "Invalid permission",
    )


def validate_role(role: RoleDocument) -> None:
    """Enforce catalog rules on a role document.

    Raises:
        ValidationError: Listing every offending field
    """
    errors = [
        _identifier_error("id", role.id, ROLE_ID_PATTERN),
        _text_error("name", role.name, MIN_CATALOG_TEXT_LENGTH, MAX_ROLE_NAME_LENGTH),
    ]
    if len(role.description) > MAX_DESCRIPTION_LENGTH:
        errors.append(
            {
                "field": "description",
                "message": f"Must be at most {MAX_DESCRIPTION_LENGTH} characters",
            }
        )
    _raise_if_errors(errors, "Invalid role")


def _check_suggestion_limit(limit: int) -> None:
    if not 1 <= limit <= MAX_SUGGESTION_LIMIT:
        raise ValidationError(
            "Invalid suggestion limit",
            errors=[
                {"field": "limit", "message": f"Must be between 1 and {MAX_SUGGESTION_LIMIT}"}
            ],
        )


def _dedupe(values: Iterable[str]) -> list[str]:
    """Drop repeated values, keeping the first occurrence."""
    return list(dict.fromkeys(values))


# ============================================================
# Permissions
# ============================================================


class PermissionService:
    """Permission catalog management.

    Writes go straight to the store, so the next read (including any
    authorization decision) sees them.
    """

    def __init__(self, permissions: PermissionRepo, roles: RoleRepo) -> None:
        self.permissions = permissions
        self.roles = roles

    async def create_permission(self, data: PermissionCreate) -> PermissionDocument:
        """Create a permission.

        The id is derived from the name when not supplied.

        Raises:
            ValidationError: If a field breaks the catalog rules
            ConflictError: If the id or name is already taken
        """
        permission = PermissionDocument(
            id=data.id or generate_identifier(PERMISSION_ID_PREFIX, data.name),
            category=data.category,
            name=data.name,
            description=data.description,
        )
        validate_permission(permission)

        if await self.permissions.get(permission.id):
            raise ConflictError(
                "Permission already exists",
                error_code="permission_exists",
                details={"id": permission.id},
            )
        if await self.permissions.find_by_name(permission.name):
            raise ConflictError(
                "Permission name already exists",
                error_code="permission_name_exists",
                details={"name": permission.name},
            )

        created = await self.permissions.create(permission)
        logger.info("permission_created", permission_id=created.id)
        return created

    async def get_permission(self, permission_id: str) -> PermissionDocument:
        """Get a permission by id.

        Raises:
            NotFoundError: If the permission doesn't exist
        """
        permission = await self.permissions.get(permission_id)
        if not permission:
            raise NotFoundError(
                "Permission not found",
                resource="permission",
                resource_id=permission_id,
            )
        return permission

    async def update_permission(
        self,
        permission_id: str,
        data: PermissionUpdate,
        if_match: str | None = None,
    ) -> PermissionDocument:
        """Apply a partial update to a permission.

        Raises:
            NotFoundError: If the permission doesn't exist
            ValidationError: If the result breaks the catalog rules
            ConflictError: If the new name is taken
            PreconditionFailedError: If the permission changed concurrently
        """
        current = await self.get_permission(permission_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        updated = current.model_copy(update={**changes, "updated_at": utc_now_iso()})
        validate_permission(updated)

        if updated.name.lower() != current.name.lower():
            existing = await self.permissions.find_by_name(updated.name)
            if existing and existing.id != permission_id:
                raise ConflictError(
                    "Permission name already exists",
                    error_code="permission_name_exists",
                    details={"name": updated.name},
                )

        saved = await self.permissions.replace(updated, if_match=if_match or current.etag)
        logger.info(
            "permission_updated",
            permission_id=permission_id,
            fields=sorted(changes),
        )
        return saved

    async def delete_permission(self, permission_id: str) -> None:
        """Delete a permission no role references.

        The reference check is best effort: a role edited concurrently
        can still end up pointing at the deleted id, which resolution
        tolerates.

        Raises:
            NotFoundError: If the permission doesn't exist
            ConflictError: If roles still reference it
        """
        await self.get_permission(permission_id)

        referencing = await self.roles.referencing(permission_id)
        if referencing:
            raise ConflictError(
                "Permission is still assigned to roles",
                error_code="permission_in_use",
                details={"roles": referencing},
            )

        await self.permissions.delete(permission_id)
        logger.info("permission_deleted", permission_id=permission_id)

    async def list_permissions(
        self,
        category: str | None = None,
        name: str | None = None,
        limit: int = 20,
        cursor: str | None = None,
    ) -> tuple[list[PermissionDocument], str | None]:
        """List permissions with continuation-token paging."""
        return await self.permissions.list_page(category, name, limit, cursor)

    async def get_categories(self) -> list[str]:
        """Distinct permission categories, sorted."""
        return sorted({permission.category for permission in await self.permissions.all()})

    async def search(
        self,
        query: str | None,
        limit: int = DEFAULT_SUGGESTION_LIMIT,
    ) -> RankedMatches[PermissionDocument]:
        """Best ``limit`` permissions matching ``query``.

        Matches on id, name, category and description; exact matches
        rank above prefix matches, which rank above substring matches.

        Raises:
            ValidationError: If ``limit`` is outside 1-50
        """
        _check_suggestion_limit(limit)
        return RankedMatches(
            await self.permissions.all(),
            query,
            fields=lambda p: (p.id, p.name, p.category, p.description),
            key=lambda p: p.id,
            limit=limit,
        )


# ============================================================
# Roles
# ============================================================


class RoleService:
    """Role management: metadata and permission membership."""

    def __init__(self, roles: RoleRepo, permissions: PermissionRepo) -> None:
        self.roles = roles
        self.permissions = permissions

    async def _resolve_references(
        self,
        references: Iterable[RolePermission],
    ) -> list[RolePermission]:
        """Check references against the catalog and fill in descriptions.

        Duplicate keys are dropped, keeping the first.

        Raises:
            ValidationError: Listing the ids missing from the catalog
        """
        resolved: list[RolePermission] = []
        unknown: list[str] = []
        seen: set[str] = set()

        for reference in references:
            if reference.key in seen:
                continue
            seen.add(reference.key)

            permission = await self.permissions.get(reference.key)
            if permission is None:
                unknown.append(reference.key)
                continue
            resolved.append(
                RolePermission(
                    key=reference.key,
                    description=reference.description or permission.description,
                )
            )

        if unknown:
            raise ValidationError(
                "Unknown permissions",
                error_code="unknown_permissions",
                errors=[
                    {"field": "permissions", "message": f"Unknown permission: {key}"}
                    for key in unknown
                ],
                details={"unknown": unknown},
            )
        return resolved

    async def create_role(self, data: RoleCreate) -> RoleDocument:
        """Create a role.

        Raises:
            ValidationError: If a field breaks the catalog rules or a
                referenced permission doesn't exist
            ConflictError: If the id or the name within the scope is taken
        """
        role = RoleDocument(
            id=data.id or generate_identifier(ROLE_ID_PREFIX, data.name),
            scope=data.scope,
            name=data.name,
            description=data.description,
        )
        validate_role(role)

        if await self.roles.get(role.id):
            raise ConflictError(
                "Role already exists",
                error_code="role_exists",
                details={"id": role.id},
            )
        if await self.roles.find_by_name(role.scope, role.name):
            raise ConflictError(
                "Role name already exists",
                error_code="role_name_exists",
                details={"scope": role.scope, "name": role.name},
            )

        role.permissions = await self._resolve_references(data.permissions)
        created = await self.roles.create(role)
        logger.info(
            "role_created",
            role_id=created.id,
            permission_count=len(created.permissions),
        )
        return created

    async def get_role(self, role_id: str) -> RoleDocument:
        """Get a role by id.

        Raises:
            NotFoundError: If the role doesn't exist
        """
        role = await self.roles.get(role_id)
        if not role:
            raise NotFoundError("Role not found", resource="role", resource_id=role_id)
        return role

    async def _save(
        self,
        current: RoleDocument,
        permissions: list[RolePermission] | None = None,
        description: str | None = None,
        if_match: str | None = None,
    ) -> RoleDocument:
        update: dict[str, Any] = {"updated_at": utc_now_iso()}
        if permissions is not None:
            update["permissions"] = permissions
        if description is not None:
            update["description"] = description

        updated = current.model_copy(update=update)
        validate_role(updated)
        return await self.roles.replace(updated, if_match=if_match or current.etag)

    async def update_role(
        self,
        role_id: str,
        data: RoleUpdate,
        if_match: str | None = None,
    ) -> RoleDocument:
        """Update a role's description and/or replace its permission list.

        Raises:
            NotFoundError: If the role doesn't exist
            ValidationError: If a referenced permission doesn't exist
            PreconditionFailedError: If the role changed concurrently
        """
        current = await self.get_role(role_id)
        permissions = None
        if data.permissions is not None:
            permissions = await self._resolve_references(data.permissions)

        saved = await self._save(current, permissions, data.description, if_match)
        logger.info("role_updated", role_id=role_id)
        return saved

    async def delete_role(self, role_id: str) -> None:
        """Delete a custom role.

        Users still assigned to the role keep a dangling reference that
        grants nothing.

        Raises:
            BadRequestError: If the role is built in
            NotFoundError: If the role doesn't exist
        """
        if role_id in PROTECTED_ROLES:
            raise BadRequestError(
                "Built-in roles cannot be deleted",
                error_code="protected_role",
                details={"role_id": role_id},
            )

        await self.get_role(role_id)
        await self.roles.delete(role_id)
        logger.info("role_deleted", role_id=role_id)

    async def list_roles(
        self,
        scope: str | None = None,
        name: str | None = None,
        limit: int = 20,
        cursor: str | None = None,
    ) -> tuple[list[RoleDocument], str | None]:
        """List roles with continuation-token paging."""
        return await self.roles.list_page(scope, name, limit, cursor)

    async def get_role_permissions(self, role_id: str) -> list[PermissionDocument]:
        """Full permission documents for a role, skipping stale references.

        Raises:
            NotFoundError: If the role doesn't exist
        """
        role = await self.get_role(role_id)
        permissions: list[PermissionDocument] = []
        for permission_id in role.permission_ids:
            permission = await self.permissions.get(permission_id)
            if permission is None:
                logger.debug(
                    "permission_reference_dangling",
                    role_id=role_id,
                    permission_id=permission_id,
                )
                continue
            permissions.append(permission)
        return permissions

    async def set_role_permissions(
        self,
        role_id: str,
        permission_ids: list[str],
        if_match: str | None = None,
    ) -> RoleDocument:
        """Replace the role's permission list.

        Raises:
            NotFoundError: If the role doesn't exist
            ValidationError: If a permission doesn't exist
        """
        current = await self.get_role(role_id)
        permissions = await self._resolve_references(
            RolePermission(key=permission_id) for permission_id in permission_ids
        )
        saved = await self._save(current, permissions=permissions, if_match=if_match)
        logger.info(
            "role_permissions_set",
            role_id=role_id,
            permission_count=len(permissions),
        )
        return saved

    async def attach_permissions(
        self,
        role_id: str,
        permission_ids: list[str],
        if_match: str | None = None,
    ) -> RoleDocument:
        """Add permissions to a role, keeping existing entries.

        Raises:
            ValidationError: If the list is empty, too long or names
                unknown permissions
            NotFoundError: If the role doesn't exist
        """
        if not 1 <= len(permission_ids) <= MAX_ATTACH_PERMISSIONS:
            raise ValidationError(
                "Invalid permission list",
                errors=[
                    {
                        "field": "permissionIds",
                        "message": f"Must contain between 1 and {MAX_ATTACH_PERMISSIONS} ids",
                    }
                ],
            )

        current = await self.get_role(role_id)
        existing = set(current.permission_ids)
        added = await self._resolve_references(
            RolePermission(key=permission_id)
            for permission_id in _dedupe(permission_ids)
            if permission_id not in existing
        )

        saved = await self._save(
            current,
            permissions=[*current.permissions, *added],
            if_match=if_match,
        )
        logger.info(
            "role_permissions_attached",
            role_id=role_id,
            attached=[reference.key for reference in added],
        )
        return saved

    async def detach_permission(
        self,
        role_id: str,
        permission_id: str,
        if_match: str | None = None,
    ) -> RoleDocument:
        """Remove one permission reference from a role.

        Raises:
            NotFoundError: If the role doesn't exist or doesn't hold the permission
        """
        current = await self.get_role(role_id)
        if permission_id not in current.permission_ids:
            raise NotFoundError(
                "Permission is not assigned to this role",
                resource="role_permission",
                resource_id=permission_id,
            )

        remaining = [ref for ref in current.permissions if ref.key != permission_id]
        saved = await self._save(current, permissions=remaining, if_match=if_match)
        logger.info(
            "role_permission_detached",
            role_id=role_id,
            permission_id=permission_id,
        )
        return saved

    async def suggest(
        self,
        query: str | None,
        limit: int = DEFAULT_SUGGESTION_LIMIT,
        scope: str = ROLE_SCOPE_SYSTEM,
    ) -> RankedMatches[RoleDocument]:
        """Best ``limit`` roles matching ``query`` on id, name and description.

        Raises:
            ValidationError: If ``limit`` is outside 1-50
        """
        _check_suggestion_limit(limit)
        roles = [role for role in await self.roles.all() if role.scope == scope]
        return RankedMatches(
            roles,
            query,
            fields=lambda r: (r.id, r.name, r.description),
            key=lambda r: r.id,
            limit=limit,
        )


# Type aliases for dependency injection
PermissionSvc = Annotated[PermissionService, Depends(PermissionService)]
RoleSvc = Annotated[RoleService, Depends(RoleService)]
