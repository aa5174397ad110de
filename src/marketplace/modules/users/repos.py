"""User repository over the users container."""

from typing import Annotated

from fastapi import Depends

from marketplace.api.dependencies import Store
from marketplace.core.constants import DEFAULT_PAGE_SIZE, USERS_CONTAINER
from marketplace.core.permissions.models import UserDocument


class UserRepository:
    """Document access for user records."""

    def __init__(self, store: Store) -> None:
        self.store = store

    async def get_by_id(self, user_id: str) -> UserDocument | None:
        """Get a user by id.

        Returns:
            The user, or None if it doesn't exist
        """
        item = await self.store.read_item(USERS_CONTAINER, user_id)
        return UserDocument.from_document(item) if item else None

    async def create(self, user: UserDocument) -> UserDocument:
        item = await self.store.create_item(USERS_CONTAINER, user.to_document())
        return UserDocument.from_document(item)

    async def replace(self, user: UserDocument, if_match: str | None = None) -> UserDocument:
        """Write back a user; ``if_match`` makes the write conditional.

        Raises:
            NotFoundError: If the user was deleted meanwhile
            PreconditionFailedError: If the stored version moved on
        """
        item = await self.store.replace_item(
            USERS_CONTAINER, user.to_document(), if_match=if_match
        )
        return UserDocument.from_document(item)

    async def list_page(
        self,
        email: str | None = None,
        is_active: bool | None = None,
        blocked: bool | None = None,
        role_id: str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: str | None = None,
    ) -> tuple[list[UserDocument], str | None]:
        """List users one page at a time.

        Args:
            email: Exact email filter (case-insensitive)
            is_active: Account active flag
            blocked: Account blocked flag
            role_id: Only users holding this role
            limit: Page size
            cursor: Continuation token from the previous page

        Returns:
            Tuple of (users, next cursor)
        """
        email_filter = email.lower() if email else None

        def matches(item: dict) -> bool:
            profile = item.get("profile") or {}
            status = item.get("status") or {}
            if email_filter and str(profile.get("email") or "").lower() != email_filter:
                return False
            if is_active is not None and status.get("isActive", True) != is_active:
                return False
            if blocked is not None and status.get("blocked", False) != blocked:
                return False
            if role_id and not any(
                ref.get("roleId") == role_id for ref in item.get("roles") or []
            ):
                return False
            return True

        page = await self.store.query_items(USERS_CONTAINER, matches, limit, cursor)
        return (
            [UserDocument.from_document(item) for item in page.items],
            page.continuation_token,
        )


# Type alias for dependency injection
UserRepo = Annotated[UserRepository, Depends(UserRepository)]
