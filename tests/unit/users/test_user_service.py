"""Unit tests for the user service."""

import pytest

from marketplace.core.auth import Principal
from marketplace.core.errors import (
    ForbiddenError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from marketplace.core.permissions import PermissionChecker
from marketplace.core.permissions.models import UserRoleRef
from marketplace.modules.users.repos import UserRepository
from marketplace.modules.users.schemas import UserStatusUpdate, UserUpdate
from marketplace.modules.users.services import UserService


pytestmark = pytest.mark.unit


@pytest.fixture
def service(store) -> UserService:
    return UserService(UserRepository(store), PermissionChecker(store))


def _refs(*role_ids: str) -> list[UserRoleRef]:
    return [UserRoleRef(role_id=role_id) for role_id in role_ids]


class TestGetUser:
    """Tests for admin-or-owner reads."""

    async def test_owner_can_read(self, service, make_user):
        user = await make_user()

        result = await service.get_user(user.id, Principal(id=user.id))

        assert result.id == user.id

    async def test_admin_can_read(self, service, make_user, admin):
        user = await make_user()

        result = await service.get_user(user.id, Principal(id=admin.id))

        assert result.id == user.id

    async def test_stranger_cannot_read(self, service, make_user, buyer):
        user = await make_user()

        with pytest.raises(ForbiddenError):
            await service.get_user(user.id, Principal(id=buyer.id))

    async def test_missing_user(self, service, admin):
        with pytest.raises(NotFoundError):
            await service.get_user("user_missing", Principal(id=admin.id))


class TestUpdateProfile:
    async def test_owner_updates_profile(self, service, make_user):
        user = await make_user()

        updated = await service.update_profile(
            user.id, UserUpdate(first_name="Ada"), Principal(id=user.id)
        )

        assert updated.profile.first_name == "Ada"
        assert updated.profile.display_name == user.profile.display_name
        assert updated.metadata.updated_by == user.id

    async def test_stale_version(self, service, make_user):
        user = await make_user()
        principal = Principal(id=user.id)
        await service.update_profile(user.id, UserUpdate(first_name="Ada"), principal)

        with pytest.raises(PreconditionFailedError):
            await service.update_profile(
                user.id, UserUpdate(first_name="Grace"), principal, if_match=user.etag
            )


class TestUpdateRoles:
    """Tests for replacing role assignments."""

    async def test_replace_roles(self, service, seeded, make_user):
        user = await make_user(roles=["role_buyer"])

        updated = await service.update_roles(
            user.id, _refs("role_dealer", "role_buyer"), updated_by="user_admin"
        )

        assert updated.role_ids == ["role_dealer", "role_buyer"]
        assert updated.metadata.updated_by == "user_admin"

    async def test_duplicates_keep_first_position(self, service, seeded, make_user):
        user = await make_user()

        updated = await service.update_roles(
            user.id, _refs("role_dealer", "role_buyer", "role_dealer")
        )

        assert updated.role_ids == ["role_dealer", "role_buyer"]

    async def test_empty_roles_rejected(self, service, make_user):
        user = await make_user(roles=["role_buyer"])

        with pytest.raises(ValidationError) as exc_info:
            await service.update_roles(user.id, [])

        assert exc_info.value.error_code == "roles_required"

    async def test_unknown_role_is_stored(self, service, seeded, make_user):
        user = await make_user()

        updated = await service.update_roles(user.id, _refs("role_future"))

        assert updated.role_ids == ["role_future"]

    async def test_new_roles_apply_immediately(self, service, seeded, store, make_user):
        user = await make_user(roles=["role_buyer"])
        checker = PermissionChecker(store)

        await service.update_roles(user.id, _refs("role_dealer"))

        assert (await checker.check_permission(user.id, "perm_publish_listings")).has_permission
        assert not (await checker.check_permission(user.id, "perm_view_sellers")).has_permission

    async def test_stale_version(self, service, seeded, make_user):
        user = await make_user(roles=["role_buyer"])
        await service.update_roles(user.id, _refs("role_dealer"))

        with pytest.raises(PreconditionFailedError):
            await service.update_roles(user.id, _refs("role_admin"), if_match=user.etag)

    async def test_missing_user(self, service):
        with pytest.raises(NotFoundError):
            await service.update_roles("user_missing", _refs("role_buyer"))


class TestUpdatePermissions:
    async def test_replace_and_dedupe(self, service, make_user):
        user = await make_user(custom_permissions=["perm_a"])

        updated = await service.update_permissions(
            user.id, ["perm_b", "perm_c", "perm_b"]
        )

        assert updated.custom_permissions == ["perm_b", "perm_c"]

    async def test_clear(self, service, make_user):
        user = await make_user(custom_permissions=["perm_a"])

        updated = await service.update_permissions(user.id, [])

        assert updated.custom_permissions == []


class TestEffectivePermissions:
    async def test_owner_reads_own(self, service, seeded, make_user):
        user = await make_user(roles=["role_buyer"], custom_permissions=["perm_export_data"])

        snapshot = await service.get_effective_permissions(user.id, Principal(id=user.id))

        assert snapshot.effective_permissions == {
            "perm_view_listings",
            "perm_view_sellers",
            "perm_export_data",
        }

    async def test_stranger_forbidden(self, service, make_user, buyer):
        user = await make_user()

        with pytest.raises(ForbiddenError):
            await service.get_effective_permissions(user.id, Principal(id=buyer.id))


class TestUpdateStatus:
    async def test_block_records_reason(self, service, make_user):
        user = await make_user()

        updated = await service.update_status(
            user.id, UserStatusUpdate(blocked=True, blocked_reason="Spam"), updated_by="admin"
        )

        assert updated.status.blocked is True
        assert updated.status.blocked_reason == "Spam"
        assert updated.status.blocked_at is not None
        assert updated.metadata.updated_by == "admin"

    async def test_block_without_reason(self, service, make_user):
        user = await make_user()

        updated = await service.update_status(user.id, UserStatusUpdate(blocked=True))

        assert updated.status.blocked_reason == "No reason provided"

    async def test_unblock_clears_block_fields(self, service, make_user):
        user = await make_user()
        await service.update_status(user.id, UserStatusUpdate(blocked=True))

        updated = await service.update_status(user.id, UserStatusUpdate(blocked=False))

        assert updated.status.blocked is False
        assert updated.status.blocked_at is None
        assert updated.status.blocked_reason is None

    async def test_unset_fields_untouched(self, service, make_user):
        user = await make_user()
        await service.update_status(user.id, UserStatusUpdate(blocked=True))

        updated = await service.update_status(user.id, UserStatusUpdate(is_active=False))

        assert updated.status.is_active is False
        assert updated.status.blocked is True

    async def test_stale_version(self, service, make_user):
        user = await make_user()
        await service.update_status(user.id, UserStatusUpdate(is_active=False))

        with pytest.raises(PreconditionFailedError):
            await service.update_status(
                user.id, UserStatusUpdate(is_active=True), if_match=user.etag
            )

    async def test_missing_user(self, service):
        with pytest.raises(NotFoundError):
            await service.update_status("user_ghost", UserStatusUpdate(blocked=True))


class TestListUsers:
    async def test_filters(self, service, make_user):
        dealer = await make_user(roles=["role_dealer"])
        await make_user(roles=["role_buyer"])
        inactive = await make_user(roles=["role_dealer"])
        await service.update_status(inactive.id, UserStatusUpdate(is_active=False))

        users, cursor = await service.list_users(role_id="role_dealer", is_active=True)

        assert [user.id for user in users] == [dealer.id]
        assert cursor is None

    async def test_email_is_case_insensitive(self, service, make_user):
        user = await make_user()

        users, _ = await service.list_users(email=user.profile.email.upper())

        assert [found.id for found in users] == [user.id]
