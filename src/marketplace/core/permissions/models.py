"""Access-control documents: permissions, roles and user assignments."""

from typing import Literal

from pydantic import Field

from marketplace.core.constants import ROLE_SCOPE_SYSTEM
from marketplace.core.schemas import CamelModel, DocumentModel, utc_now_iso


class PermissionDocument(DocumentModel):
    """A single grantable capability, e.g. ``perm_manage_listings``."""

    type: Literal["permission"] = "permission"
    category: str
    name: str
    description: str
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)


class RolePermission(CamelModel):
    """A permission reference held by a role.

    ``description`` is a cached copy for display; the catalog stays
    authoritative and the reference may outlive the permission.
    """

    key: str
    description: str | None = None


class RoleDocument(DocumentModel):
    """A named bundle of permission references."""

    type: Literal["role"] = "role"
    scope: Literal["system"] = ROLE_SCOPE_SYSTEM
    name: str
    description: str = ""
    permissions: list[RolePermission] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)

    @property
    def permission_ids(self) -> list[str]:
        return [ref.key for ref in self.permissions]


class UserRoleRef(CamelModel):
    """One role assignment on a user record."""

    role_id: str


class UserProfile(CamelModel):
    display_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None


class UserStatus(CamelModel):
    is_active: bool = True
    blocked: bool = False
    blocked_at: str | None = None
    blocked_reason: str | None = None


class UserMetadata(CamelModel):
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)
    updated_by: str | None = None


class UserDocument(DocumentModel):
    """A marketplace user as seen by access control.

    Role assignments are an ordered list; the order decides which role
    is reported as the source of a permission.
    """

    type: Literal["user"] = "user"
    profile: UserProfile = Field(default_factory=UserProfile)
    status: UserStatus = Field(default_factory=UserStatus)
    roles: list[UserRoleRef] = Field(default_factory=list)
    custom_permissions: list[str] = Field(default_factory=list)
    metadata: UserMetadata = Field(default_factory=UserMetadata)

    @property
    def role_ids(self) -> list[str]:
        return [ref.role_id for ref in self.roles]
