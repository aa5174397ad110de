"""Repositories for the permission and role containers."""

from typing import Annotated

from fastapi import Depends

from marketplace.api.dependencies import Store
from marketplace.core.constants import (
    DEFAULT_PAGE_SIZE,
    PERMISSIONS_CONTAINER,
    ROLES_CONTAINER,
)
from marketplace.core.permissions.models import PermissionDocument, RoleDocument


class PermissionRepository:
    """Document access for the permission catalog."""

    def __init__(self, store: Store) -> None:
        self.store = store

    async def get(self, permission_id: str) -> PermissionDocument | None:
        item = await self.store.read_item(PERMISSIONS_CONTAINER, permission_id)
        return PermissionDocument.from_document(item) if item else None

    async def create(self, permission: PermissionDocument) -> PermissionDocument:
        item = await self.store.create_item(PERMISSIONS_CONTAINER, permission.to_document())
        return PermissionDocument.from_document(item)

    async def replace(
        self,
        permission: PermissionDocument,
        if_match: str | None = None,
    ) -> PermissionDocument:
        item = await self.store.replace_item(
            PERMISSIONS_CONTAINER, permission.to_document(), if_match=if_match
        )
        return PermissionDocument.from_document(item)

    async def delete(self, permission_id: str) -> bool:
        return await self.store.delete_item(PERMISSIONS_CONTAINER, permission_id)

    async def list_page(
        self,
        category: str | None = None,
        name: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: str | None = None,
    ) -> tuple[list[PermissionDocument], str | None]:
        """List permissions one page at a time.

        Args:
            category: Exact category filter (case-insensitive)
            name: Name prefix filter (case-insensitive)
            limit: Page size
            cursor: Continuation token from the previous page

        Returns:
            Tuple of (permissions, next cursor)
        """
        category_filter = category.lower() if category else None
        name_filter = name.lower() if name else None

        def matches(item: dict) -> bool:
            if category_filter and str(item.get("category", "")).lower() != category_filter:
                return False
            if name_filter and not str(item.get("name", "")).lower().startswith(name_filter):
                return False
            return True

        page = await self.store.query_items(PERMISSIONS_CONTAINER, matches, limit, cursor)
        return (
            [PermissionDocument.from_document(item) for item in page.items],
            page.continuation_token,
        )

    async def all(self) -> list[PermissionDocument]:
        """Every permission in the catalog, ordered by id."""
        return [
            PermissionDocument.from_document(item)
            async for item in self.store.iter_items(PERMISSIONS_CONTAINER)
        ]

    async def find_by_name(self, name: str) -> PermissionDocument | None:
        """Find a permission by display name (case-insensitive)."""
        wanted = name.lower()
        page = await self.store.query_items(
            PERMISSIONS_CONTAINER,
            lambda item: str(item.get("name", "")).lower() == wanted,
            limit=1,
        )
        return PermissionDocument.from_document(page.items[0]) if page.items else None


class RoleRepository:
    """Document access for roles."""

    def __init__(self, store: Store) -> None:
        self.store = store

    async def get(self, role_id: str) -> RoleDocument | None:
        item = await self.store.read_item(ROLES_CONTAINER, role_id)
        return RoleDocument.from_document(item) if item else None

    async def create(self, role: RoleDocument) -> RoleDocument:
        item = await self.store.create_item(ROLES_CONTAINER, role.to_document())
        return RoleDocument.from_document(item)

    async def replace(self, role: RoleDocument, if_match: str | None = None) -> RoleDocument:
        item = await self.store.replace_item(
            ROLES_CONTAINER, role.to_document(), if_match=if_match
        )
        return RoleDocument.from_document(item)

    async def delete(self, role_id: str) -> bool:
        return await self.store.delete_item(ROLES_CONTAINER, role_id)

    async def list_page(
        self,
        scope: str | None = None,
        name: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: str | None = None,
    ) -> tuple[list[RoleDocument], str | None]:
        """List roles one page at a time.

        Args:
            scope: Scope filter
            name: Name substring filter (case-insensitive)
            limit: Page size
            cursor: Continuation token from the previous page

        Returns:
            Tuple of (roles, next cursor)
        """
        name_filter = name.lower() if name else None

        def matches(item: dict) -> bool:
            if scope and item.get("scope") != scope:
                return False
            if name_filter and name_filter not in str(item.get("name", "")).lower():
                return False
            return True

        page = await self.store.query_items(ROLES_CONTAINER, matches, limit, cursor)
        return (
            [RoleDocument.from_document(item) for item in page.items],
            page.continuation_token,
        )

    async def all(self) -> list[RoleDocument]:
        """Every role, ordered by id."""
        return [
            RoleDocument.from_document(item)
            async for item in self.store.iter_items(ROLES_CONTAINER)
        ]

    async def find_by_name(self, scope: str, name: str) -> RoleDocument | None:
        """Find a role by name within a scope (case-insensitive)."""
        wanted = name.lower()
        page = await self.store.query_items(
            ROLES_CONTAINER,
            lambda item: item.get("scope") == scope
            and str(item.get("name", "")).lower() == wanted,
            limit=1,
        )
        return RoleDocument.from_document(page.items[0]) if page.items else None

    async def referencing(self, permission_id: str) -> list[str]:
        """Ids of roles that reference ``permission_id``."""
        return [
            item["id"]
            async for item in self.store.iter_items(
                ROLES_CONTAINER,
                lambda item: any(
                    ref.get("key") == permission_id for ref in item.get("permissions", [])
                ),
            )
        ]


# Type aliases for dependency injection
PermissionRepo = Annotated[PermissionRepository, Depends(PermissionRepository)]
RoleRepo = Annotated[RoleRepository, Depends(RoleRepository)]
