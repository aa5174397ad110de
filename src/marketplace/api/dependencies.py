"""Shared API dependencies."""

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.database import DocumentStore, get_db


# Type alias for database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]


async def get_store(db: DBSession) -> DocumentStore:
    """Document store bound to the request's database session."""
    return DocumentStore(db)


Store = Annotated[DocumentStore, Depends(get_store)]


async def get_if_match(
    if_match: Annotated[str | None, Header(description="Expected version tag")] = None,
) -> str | None:
    """Version tag from the ``If-Match`` header, without quotes or weak prefix."""
    if not if_match:
        return None
    return if_match.strip().removeprefix("W/").strip('"') or None


IfMatch = Annotated[str | None, Depends(get_if_match)]
