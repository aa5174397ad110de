"""Pydantic schemas for user access-control operations."""

from pydantic import ConfigDict, EmailStr, Field

from marketplace.core.constants import MAX_DESCRIPTION_LENGTH, MAX_NAME_LENGTH
from marketplace.core.permissions.models import UserDocument, UserRoleRef
from marketplace.core.schemas import CamelModel


class UserUpdate(CamelModel):
    """Schema for updating a user's profile."""

    model_config = ConfigDict(str_strip_whitespace=True)

    display_name: str | None = Field(None, min_length=1, max_length=MAX_NAME_LENGTH)
    first_name: str | None = Field(None, min_length=1, max_length=MAX_NAME_LENGTH)
    last_name: str | None = Field(None, min_length=1, max_length=MAX_NAME_LENGTH)
    email: EmailStr | None = None


class UserRolesUpdate(CamelModel):
    """Replacement role assignments, in priority order.

    An empty list is rejected by the service.
    """

    roles: list[UserRoleRef]


class UserPermissionsUpdate(CamelModel):
    """Replacement direct permission grants (may be empty)."""

    custom_permissions: list[str]


class UserStatusUpdate(CamelModel):
    """Partial account status change.

    Blocking records when and why; unblocking clears both.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    is_active: bool | None = None
    blocked: bool | None = None
    blocked_reason: str | None = Field(None, max_length=MAX_DESCRIPTION_LENGTH)


class UserListResponse(CamelModel):
    items: list[UserDocument]
    next_cursor: str | None = None
