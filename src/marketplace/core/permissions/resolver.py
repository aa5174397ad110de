"""Role resolution and effective permission calculation.

Nothing here is cached: every call reads the current role and user
documents, so catalog and assignment edits apply to the next request.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from marketplace.core.constants import ROLES_CONTAINER, USERS_CONTAINER
from marketplace.core.database import DocumentStore
from marketplace.core.errors import NotFoundError
from marketplace.core.permissions.models import RoleDocument, UserDocument


logger = structlog.get_logger()


@dataclass(frozen=True)
class EffectivePermissions:
    """Snapshot of everything a user holds at one point in time.

    Attributes:
        user_id: The user the snapshot belongs to
        roles: Assigned role ids in assignment order (dangling ones included)
        custom_permissions: Directly granted permission ids
        effective_permissions: Union of role-derived and direct permissions
        resolved_roles: Role documents that exist, in assignment order
    """

    user_id: str
    roles: tuple[str, ...] = ()
    custom_permissions: frozenset[str] = frozenset()
    effective_permissions: frozenset[str] = frozenset()
    resolved_roles: tuple[RoleDocument, ...] = field(default=(), compare=False)

    @property
    def role_grants(self) -> list[tuple[str, frozenset[str]]]:
        """``(role_id, permission_ids)`` for each resolved role, in order."""
        return [
            (role.id, frozenset(role.permission_ids)) for role in self.resolved_roles
        ]

    def __contains__(self, permission_id: object) -> bool:
        return permission_id in self.effective_permissions


class RoleResolver:
    """Turns role ids into the permissions they grant."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def load_roles(self, role_ids: Iterable[str]) -> list[RoleDocument]:
        """Fetch each distinct role once, keeping the given order.

        Roles that don't exist are skipped: a dangling reference grants
        nothing and is not an error.
        """
        roles: list[RoleDocument] = []
        seen: set[str] = set()

        for role_id in role_ids:
            if role_id in seen:
                continue
            seen.add(role_id)

            item = await self.store.read_item(ROLES_CONTAINER, role_id)
            if item is None:
                logger.debug("role_reference_dangling", role_id=role_id)
                continue
            roles.append(RoleDocument.from_document(item))

        return roles

    async def resolve_role_permissions(self, role_ids: Iterable[str]) -> set[str]:
        """Union of the permission ids granted by ``role_ids``.

        The catalog is not consulted, so references to deleted
        permissions pass through as inert ids.
        """
        permissions: set[str] = set()
        for role in await self.load_roles(role_ids):
            permissions.update(role.permission_ids)
        return permissions


class EffectivePermissionCalculator:
    """Combines a user's roles and direct grants into one permission set."""

    def __init__(self, store: DocumentStore, resolver: RoleResolver | None = None) -> None:
        self.store = store
        self.resolver = resolver or RoleResolver(store)

    async def get_user(self, user_id: str) -> UserDocument:
        """Load a user document.

        Raises:
            NotFoundError: If the user doesn't exist
        """
        item = await self.store.read_item(USERS_CONTAINER, user_id)
        if item is None:
            raise NotFoundError("User not found", resource="user", resource_id=user_id)
        return UserDocument.from_document(item)

    async def compute_for_user(self, user: UserDocument) -> EffectivePermissions:
        """Compute the effective permissions of an already loaded user."""
        role_ids = tuple(user.role_ids)
        custom = frozenset(user.custom_permissions)
        resolved = await self.resolver.load_roles(role_ids)

        effective = set(custom)
        for role in resolved:
            effective.update(role.permission_ids)

        return EffectivePermissions(
            user_id=user.id,
            roles=role_ids,
            custom_permissions=custom,
            effective_permissions=frozenset(effective),
            resolved_roles=tuple(resolved),
        )

    async def compute_effective_permissions(self, user_id: str) -> EffectivePermissions:
        """Compute the effective permissions of a user from current data.

        Raises:
            NotFoundError: If the user doesn't exist
        """
        user = await self.get_user(user_id)
        return await self.compute_for_user(user)
