"""Unit tests for the role service."""

import pytest

from marketplace.core.errors import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from marketplace.core.permissions import PermissionChecker
from marketplace.core.permissions.models import RolePermission
from marketplace.modules.rbac.repos import PermissionRepository, RoleRepository
from marketplace.modules.rbac.schemas import RoleCreate, RoleUpdate
from marketplace.modules.rbac.services import RoleService


pytestmark = pytest.mark.unit


@pytest.fixture
def service(store) -> RoleService:
    return RoleService(RoleRepository(store), PermissionRepository(store))


class TestCreateRole:
    """Tests for creating roles."""

    async def test_create_with_permissions(self, service, seeded):
        role = await service.create_role(
            RoleCreate(
                name="Listing Reviewer",
                permissions=[RolePermission(key="perm_view_listings")],
            )
        )

        assert role.id == "role_listing_reviewer"
        assert role.scope == "system"
        assert role.permissions[0].description == "View vehicle listings"

    async def test_duplicate_references_collapse(self, service, seeded):
        role = await service.create_role(
            RoleCreate(
                name="Viewer",
                permissions=[
                    RolePermission(key="perm_view_listings"),
                    RolePermission(key="perm_view_listings"),
                ],
            )
        )

        assert role.permission_ids == ["perm_view_listings"]

    async def test_unknown_permission(self, service, seeded):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_role(
                RoleCreate(name="Broken", permissions=[RolePermission(key="perm_nope")])
            )

        assert exc_info.value.error_code == "unknown_permissions"
        assert exc_info.value.details["unknown"] == ["perm_nope"]

    async def test_invalid_name(self, service):
        with pytest.raises(ValidationError):
            await service.create_role(RoleCreate(id="role_ok", name="ab"))

    async def test_name_taken_in_scope(self, service, seeded):
        with pytest.raises(ConflictError) as exc_info:
            await service.create_role(RoleCreate(id="role_other_buyer", name="BUYER"))

        assert exc_info.value.error_code == "role_name_exists"

    async def test_id_taken(self, service, seeded):
        with pytest.raises(ConflictError) as exc_info:
            await service.create_role(RoleCreate(id="role_buyer", name="Another Buyer"))

        assert exc_info.value.error_code == "role_exists"


class TestUpdateRole:
    """Tests for updating role metadata and membership."""

    async def test_update_description_keeps_permissions(self, service, seeded):
        role = await service.update_role("role_buyer", RoleUpdate(description="Shoppers"))

        assert role.description == "Shoppers"
        assert role.permission_ids == ["perm_view_listings", "perm_view_sellers"]

    async def test_replace_permissions(self, service, seeded):
        role = await service.update_role(
            "role_buyer",
            RoleUpdate(permissions=[RolePermission(key="perm_view_reviews")]),
        )

        assert role.permission_ids == ["perm_view_reviews"]

    async def test_stale_version(self, service, seeded):
        role = await service.get_role("role_buyer")
        await service.update_role("role_buyer", RoleUpdate(description="First"))

        with pytest.raises(PreconditionFailedError):
            await service.update_role(
                "role_buyer", RoleUpdate(description="Second"), if_match=role.etag
            )

    async def test_role_edit_changes_decisions(self, service, seeded, store, make_user):
        """Editing a role is visible to the next permission check."""
        user = await make_user(roles=["role_buyer"])
        checker = PermissionChecker(store)
        assert not (await checker.check_permission(user.id, "perm_export_data")).has_permission

        await service.attach_permissions("role_buyer", ["perm_export_data"])

        result = await checker.check_permission(user.id, "perm_export_data")
        assert result.has_permission
        assert result.role_id == "role_buyer"


class TestMembership:
    """Tests for set/attach/detach of permissions."""

    async def test_set_permissions(self, service, seeded):
        role = await service.set_role_permissions(
            "role_moderator", ["perm_view_logs", "perm_view_users"]
        )

        assert role.permission_ids == ["perm_view_logs", "perm_view_users"]

    async def test_set_permissions_empty(self, service, seeded):
        role = await service.set_role_permissions("role_moderator", [])

        assert role.permissions == []

    async def test_attach_appends_new_only(self, service, seeded):
        role = await service.attach_permissions(
            "role_buyer", ["perm_view_sellers", "perm_view_reviews", "perm_view_reviews"]
        )

        assert role.permission_ids == [
            "perm_view_listings",
            "perm_view_sellers",
            "perm_view_reviews",
        ]

    async def test_attach_bounds(self, service, seeded):
        with pytest.raises(ValidationError):
            await service.attach_permissions("role_buyer", [])
        with pytest.raises(ValidationError):
            await service.attach_permissions(
                "role_buyer", [f"perm_{index}" for index in range(101)]
            )

    async def test_attach_unknown(self, service, seeded):
        with pytest.raises(ValidationError):
            await service.attach_permissions("role_buyer", ["perm_missing"])

    async def test_detach(self, service, seeded):
        role = await service.detach_permission("role_buyer", "perm_view_sellers")

        assert role.permission_ids == ["perm_view_listings"]

    async def test_detach_not_attached(self, service, seeded):
        with pytest.raises(NotFoundError):
            await service.detach_permission("role_buyer", "perm_export_data")

    async def test_role_permissions_skip_stale_references(self, service, make_role):
        role = await make_role(grants=["perm_deleted"])

        assert await service.get_role_permissions(role.id) == []

    async def test_role_permissions(self, service, seeded):
        permissions = await service.get_role_permissions("role_buyer")

        assert [permission.id for permission in permissions] == [
            "perm_view_listings",
            "perm_view_sellers",
        ]


class TestDeleteRole:
    """Tests for deleting roles."""

    @pytest.mark.parametrize("role_id", ["role_super_admin", "role_admin"])
    async def test_protected(self, service, seeded, role_id):
        with pytest.raises(BadRequestError):
            await service.delete_role(role_id)

    async def test_delete_leaves_dangling_assignment(
        self, service, seeded, store, make_user
    ):
        user = await make_user(roles=["role_dealer", "role_buyer"])

        await service.delete_role("role_dealer")

        snapshot = await PermissionChecker(store).get_effective_permissions(user.id)
        assert snapshot.roles == ("role_dealer", "role_buyer")
        assert "perm_publish_listings" not in snapshot

    async def test_delete_missing(self, service):
        with pytest.raises(NotFoundError):
            await service.delete_role("role_missing")


class TestListAndSuggest:
    async def test_list_by_name(self, service, seeded):
        roles, cursor = await service.list_roles(name="dealer")

        assert {role.id for role in roles} == {"role_dealer", "role_dealer_staff"}
        assert cursor is None

    async def test_suggest(self, service, seeded):
        matches = await service.suggest("dealer", limit=2)

        assert [role.id for role in matches] == ["role_dealer", "role_dealer_staff"]

    async def test_suggest_limit(self, service):
        with pytest.raises(ValidationError):
            await service.suggest("dealer", limit=0)
