"""FastAPI dependencies for the access decision point."""

from typing import Annotated

from fastapi import Depends

from marketplace.api.dependencies import Store
from marketplace.core.permissions.checker import PermissionChecker


async def get_permission_checker(store: Store) -> PermissionChecker:
    """Decision point bound to the request's document store."""
    return PermissionChecker(store)


Checker = Annotated[PermissionChecker, Depends(get_permission_checker)]
