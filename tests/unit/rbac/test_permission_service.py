"""Unit tests for the permission catalog service."""

import pytest

from marketplace.core.errors import (
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from marketplace.modules.rbac.repos import PermissionRepository, RoleRepository
from marketplace.modules.rbac.schemas import PermissionCreate, PermissionUpdate
from marketplace.modules.rbac.services import PermissionService


pytestmark = pytest.mark.unit


@pytest.fixture
def service(store) -> PermissionService:
    return PermissionService(PermissionRepository(store), RoleRepository(store))


def _create(**overrides) -> PermissionCreate:
    data = {
        "category": "inventory",
        "name": "Export Inventory",
        "description": "Export the dealer inventory",
    }
    data.update(overrides)
    return PermissionCreate(**data)


class TestCreatePermission:
    """Tests for creating permissions."""

    async def test_id_derived_from_name(self, service):
        permission = await service.create_permission(_create())

        assert permission.id == "perm_export_inventory"
        assert permission.etag == "1"
        assert permission.created_at

    async def test_explicit_id(self, service):
        permission = await service.create_permission(_create(id="perm_inventory_export"))

        assert permission.id == "perm_inventory_export"

    async def test_invalid_id(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_permission(_create(id="Export-Inventory"))

        fields = [error["field"] for error in exc_info.value.details["errors"]]
        assert fields == ["id"]

    async def test_every_bad_field_is_reported(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_permission(
                _create(category="x", name="ab", description=" ")
            )

        fields = {error["field"] for error in exc_info.value.details["errors"]}
        assert fields == {"category", "name", "description"}

    async def test_duplicate_id(self, service):
        await service.create_permission(_create())

        with pytest.raises(ConflictError) as exc_info:
            await service.create_permission(_create(id="perm_export_inventory", name="Another Name"))

        assert exc_info.value.error_code == "permission_exists"

    async def test_duplicate_name_any_case(self, service):
        await service.create_permission(_create())

        with pytest.raises(ConflictError) as exc_info:
            await service.create_permission(
                _create(id="perm_other", name="export inventory")
            )

        assert exc_info.value.error_code == "permission_name_exists"


class TestUpdatePermission:
    """Tests for partial updates."""

    async def test_partial_update(self, service, make_permission):
        permission = await make_permission()

        updated = await service.update_permission(
            permission.id, PermissionUpdate(description="New description")
        )

        assert updated.description == "New description"
        assert updated.name == permission.name
        assert updated.etag == "2"

    async def test_stale_version(self, service, make_permission):
        permission = await make_permission()
        await service.update_permission(permission.id, PermissionUpdate(category="first"))

        with pytest.raises(PreconditionFailedError):
            await service.update_permission(
                permission.id,
                PermissionUpdate(category="second"),
                if_match=permission.etag,
            )

    async def test_rename_to_taken_name(self, service, make_permission):
        taken = await make_permission()
        permission = await make_permission()

        with pytest.raises(ConflictError):
            await service.update_permission(
                permission.id, PermissionUpdate(name=taken.name.upper())
            )

    async def test_invalid_update(self, service, make_permission):
        permission = await make_permission()

        with pytest.raises(ValidationError):
            await service.update_permission(permission.id, PermissionUpdate(name="ab"))

    async def test_missing(self, service):
        with pytest.raises(NotFoundError):
            await service.update_permission("perm_missing", PermissionUpdate(name="Valid"))


class TestDeletePermission:
    """Tests for deleting permissions."""

    async def test_delete_unreferenced(self, service, make_permission):
        permission = await make_permission()

        await service.delete_permission(permission.id)

        with pytest.raises(NotFoundError):
            await service.get_permission(permission.id)

    async def test_delete_in_use(self, service, make_permission, make_role):
        permission = await make_permission()
        role = await make_role(grants=[permission.id])

        with pytest.raises(ConflictError) as exc_info:
            await service.delete_permission(permission.id)

        assert exc_info.value.error_code == "permission_in_use"
        assert exc_info.value.details["roles"] == [role.id]

    async def test_delete_missing(self, service):
        with pytest.raises(NotFoundError):
            await service.delete_permission("perm_missing")


class TestListAndSearch:
    """Tests for listing, categories and suggestions."""

    async def test_list_filters_by_category(self, service, seeded):
        items, _ = await service.list_permissions(category="USERS", limit=50)

        assert {item.id for item in items} == {
            "perm_manage_users",
            "perm_view_users",
            "perm_assign_roles",
        }

    async def test_list_filters_by_name_prefix(self, service, seeded):
        items, _ = await service.list_permissions(name="view", limit=50)

        assert items
        assert all(item.name.startswith("View") for item in items)

    async def test_list_pages(self, service, seeded):
        first, cursor = await service.list_permissions(limit=5)
        second, _ = await service.list_permissions(limit=5, cursor=cursor)

        assert len(first) == 5
        assert cursor is not None
        assert not {item.id for item in first} & {item.id for item in second}

    async def test_categories(self, service, seeded):
        categories = await service.get_categories()

        assert categories == sorted(categories)
        assert len(categories) == 8
        assert "listings" in categories

    async def test_search_ranks_exact_first(self, service, seeded):
        matches = await service.search("view users", limit=5)

        assert next(iter(matches)).id == "perm_view_users"

    async def test_search_limit_bounds(self, service):
        with pytest.raises(ValidationError):
            await service.search("view", limit=0)
        with pytest.raises(ValidationError):
            await service.search("view", limit=51)
