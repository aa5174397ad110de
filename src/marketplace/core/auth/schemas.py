"""Authentication schemas and the request principal."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel


if TYPE_CHECKING:
    from marketplace.core.permissions.models import UserDocument


class TokenData(BaseModel):
    """Data extracted from a JWT token.

    Attributes:
        user_id: Identifier of the user document
        exp: Token expiration time
        type: Token type (only "access" is issued)
        jti: Unique token id
    """

    user_id: str
    exp: datetime
    type: str = "access"
    jti: str | None = None


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of a request.

    Built once per request from the user document and never mutated
    afterwards. ``roles`` and ``custom_permissions`` are a convenience
    snapshot taken at authentication time; authorization decisions are
    always re-derived from the store.

    Attributes:
        id: User identifier
        roles: Assigned role ids in assignment order
        custom_permissions: Directly granted permission ids
    """

    id: str
    roles: tuple[str, ...] = field(default_factory=tuple)
    custom_permissions: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_user(cls, user: "UserDocument") -> "Principal":
        return cls(
            id=user.id,
            roles=tuple(user.role_ids),
            custom_permissions=frozenset(user.custom_permissions),
        )

    def has_role(self, *role_ids: str) -> bool:
        """Flat membership test: True if any of ``role_ids`` is assigned."""
        return any(role_id in self.roles for role_id in role_ids)
