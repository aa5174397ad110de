"""Access decision point.

Every protected operation asks ``PermissionChecker`` whether a user
holds a permission. Answers are derived from the store on each call.
A negative answer is a normal result here; raising ``ForbiddenError``
is left to the gating layer (decorators, ownership checks).
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from marketplace.core.database import DocumentStore
from marketplace.core.errors import ValidationError
from marketplace.core.permissions.resolver import (
    EffectivePermissionCalculator,
    EffectivePermissions,
)


if TYPE_CHECKING:
    from marketplace.core.auth.schemas import Principal


PermissionSource = Literal["direct", "role", "none"]


@dataclass(frozen=True)
class PermissionCheck:
    """Outcome of a single permission check.

    Attributes:
        permission: The permission that was checked
        has_permission: Whether the user holds it
        source: "direct" for a custom grant, "role" when granted by a role,
            "none" when not held
        role_id: The first assigned role granting it (only for "role")
    """

    permission: str
    has_permission: bool
    source: PermissionSource = "none"
    role_id: str | None = None


def evaluate(snapshot: EffectivePermissions, permission_id: str) -> PermissionCheck:
    """Check one permission against a snapshot.

    Direct grants win over roles; among roles the first one in
    assignment order wins.
    """
    if permission_id in snapshot.custom_permissions:
        return PermissionCheck(permission_id, True, "direct")

    for role_id, granted in snapshot.role_grants:
        if permission_id in granted:
            return PermissionCheck(permission_id, True, "role", role_id)

    return PermissionCheck(permission_id, False)


class PermissionChecker:
    """Service answering "does this user hold permission X?"."""

    def __init__(
        self,
        store: DocumentStore,
        calculator: EffectivePermissionCalculator | None = None,
    ) -> None:
        self.store = store
        self.calculator = calculator or EffectivePermissionCalculator(store)

    async def get_effective_permissions(self, user_id: str) -> EffectivePermissions:
        """Full effective-permission snapshot of a user.

        Raises:
            NotFoundError: If the user doesn't exist
        """
        return await self.calculator.compute_effective_permissions(user_id)

    async def check_permission(self, user_id: str, permission_id: str) -> PermissionCheck:
        """Check whether a user holds a permission and where it comes from.

        Raises:
            NotFoundError: If the user doesn't exist
        """
        snapshot = await self.get_effective_permissions(user_id)
        return evaluate(snapshot, permission_id)

    async def check_permissions_batch(
        self,
        user_id: str,
        permission_ids: list[str],
    ) -> dict[str, PermissionCheck]:
        """Check several permissions against a single snapshot.

        The user's roles and grants are read once, so every answer in
        the result reflects the same state.

        Raises:
            ValidationError: If ``permission_ids`` is empty
            NotFoundError: If the user doesn't exist
        """
        if not permission_ids:
            raise ValidationError(
                "At least one permission is required",
                errors=[{"field": "permissions", "message": "Must not be empty"}],
            )

        snapshot = await self.get_effective_permissions(user_id)
        return {
            permission_id: evaluate(snapshot, permission_id)
            for permission_id in permission_ids
        }

    async def principal_has_permission(
        self,
        principal: "Principal",
        permission_id: str,
    ) -> bool:
        """Check a permission for the caller of the current request."""
        result = await self.check_permission(principal.id, permission_id)
        return result.has_permission

    async def principal_snapshot(self, principal: "Principal") -> EffectivePermissions:
        """Effective permissions of the caller, read fresh from the store."""
        return await self.get_effective_permissions(principal.id)
