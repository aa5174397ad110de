"""Document store on top of SQLAlchemy.

Records live in a single ``documents`` table keyed by
``(container, id)`` with a JSON body, the way a document database
keeps items in named containers. The store offers point reads,
point writes (with optional compare-and-swap on a version tag) and
keyset-paginated queries that hand back an opaque continuation token.

Reads always go to the database; nothing is served from the session
identity map, so an edit committed by another request is visible on
the next read.
"""

import base64
import binascii
import copy
import json
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import JSON, DateTime, Integer, String, delete, func, select, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from marketplace.core.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_CONTAINER_NAME_LENGTH,
    MAX_DOCUMENT_ID_LENGTH,
)
from marketplace.core.errors import (
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
    RetrievalError,
    ValidationError,
)


logger = structlog.get_logger()

# Version tag exposed on every document returned by the store
ETAG_FIELD = "_etag"

Predicate = Callable[[dict[str, Any]], bool]


class Base(DeclarativeBase):
    """Declarative base of the document store schema."""


class Document(Base):
    """A JSON document stored in a named container.

    Attributes:
        container: Container name (e.g. "users", "roles", "permissions")
        id: Document identifier, unique within its container
        body: The document itself
        version: Incremented on every write; used for conditional replaces
        created_at: Set by the database on insert
        updated_at: Refreshed on every replace
    """

    __tablename__ = "documents"

    container: Mapped[str] = mapped_column(
        String(MAX_CONTAINER_NAME_LENGTH),
        primary_key=True,
    )
    id: Mapped[str] = mapped_column(
        String(MAX_DOCUMENT_ID_LENGTH),
        primary_key=True,
    )
    body: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Document({self.container}/{self.id}, version={self.version})>"


@dataclass
class QueryPage:
    """One page of query results.

    Attributes:
        items: Documents on this page
        continuation_token: Opaque token for the next page, None when exhausted
    """

    items: list[dict[str, Any]] = field(default_factory=list)
    continuation_token: str | None = None


def encode_continuation_token(last_id: str) -> str:
    """Encode the last scanned document id as an opaque token."""
    raw = json.dumps({"after": last_id}).encode()
    return base64.urlsafe_b64encode(raw).decode()


def decode_continuation_token(token: str) -> str:
    """Decode a continuation token produced by ``encode_continuation_token``.

    Raises:
        ValidationError: If the token is malformed
    """
    try:
        payload = json.loads(base64.urlsafe_b64decode(token.encode()))
        after = payload["after"]
    except (binascii.Error, ValueError, KeyError, TypeError) as exc:
        raise ValidationError(
            "Invalid continuation token",
            error_code="invalid_cursor",
        ) from exc
    if not isinstance(after, str):
        raise ValidationError("Invalid continuation token", error_code="invalid_cursor")
    return after


@contextmanager
def _store_errors(operation: str, container: str) -> Iterator[None]:
    """Translate driver failures into application errors.

    Duplicate keys become ConflictError; every other database or
    network failure becomes RetrievalError so callers fail closed.
    """
    try:
        yield
    except IntegrityError as exc:
        raise ConflictError(
            "Document already exists",
            error_code="document_exists",
            details={"container": container},
        ) from exc
    except (SQLAlchemyError, OSError) as exc:
        logger.error(
            "document_store_failure",
            operation=operation,
            container=container,
            error=str(exc),
        )
        raise RetrievalError(details={"operation": operation}) from exc


class DocumentStore:
    """Container-oriented document access over an AsyncSession.

    Changes are flushed, not committed; the surrounding unit of work
    (``get_db``) owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _to_item(row: Document) -> dict[str, Any]:
        item = copy.deepcopy(row.body)
        item["id"] = row.id
        item[ETAG_FIELD] = str(row.version)
        return item

    @staticmethod
    def _to_body(item: dict[str, Any]) -> dict[str, Any]:
        body = copy.deepcopy(item)
        body.pop(ETAG_FIELD, None)
        if not body.get("id"):
            raise ValueError("Documents must carry a non-empty 'id'")
        return body

    async def read_item(self, container: str, item_id: str) -> dict[str, Any] | None:
        """Read a document by id.

        Returns:
            The document, or None if it doesn't exist
        """
        stmt = (
            select(Document)
            .where(Document.container == container, Document.id == item_id)
            .execution_options(populate_existing=True)
        )
        with _store_errors("read", container):
            result = await self.session.execute(stmt)
            row = result.scalar_one_or_none()
        return self._to_item(row) if row is not None else None

    async def create_item(self, container: str, item: dict[str, Any]) -> dict[str, Any]:
        """Insert a new document.

        Raises:
            ConflictError: If a document with the same id exists
        """
        body = self._to_body(item)
        if await self.read_item(container, body["id"]) is not None:
            raise ConflictError(
                "Document already exists",
                error_code="document_exists",
                details={"container": container, "id": body["id"]},
            )

        row = Document(container=container, id=body["id"], body=body, version=1)
        with _store_errors("create", container):
            self.session.add(row)
            await self.session.flush()
        return self._to_item(row)

    async def replace_item(
        self,
        container: str,
        item: dict[str, Any],
        if_match: str | None = None,
    ) -> dict[str, Any]:
        """Replace an existing document.

        Args:
            container: Container name
            item: Full replacement document (must carry its id)
            if_match: Expected version tag; the write only applies if the
                stored version still matches

        Raises:
            NotFoundError: If the document doesn't exist
            PreconditionFailedError: If ``if_match`` is stale
        """
        body = self._to_body(item)
        item_id = body["id"]

        stmt = update(Document).where(
            Document.container == container,
            Document.id == item_id,
        )
        if if_match is not None:
            if not if_match.isdigit():
                raise PreconditionFailedError(details={"expected": if_match})
            stmt = stmt.where(Document.version == int(if_match))
        stmt = (
            stmt.values(body=body, version=Document.version + 1, updated_at=func.now())
            .returning(Document.version)
            .execution_options(synchronize_session=False)
        )

        with _store_errors("replace", container):
            result = await self.session.execute(stmt)
            new_version = result.scalar_one_or_none()

        if new_version is None:
            current = await self.read_item(container, item_id)
            if current is None:
                raise NotFoundError(
                    "Document not found",
                    resource=container,
                    resource_id=item_id,
                )
            raise PreconditionFailedError(
                details={"expected": if_match, "actual": current[ETAG_FIELD]},
            )

        body[ETAG_FIELD] = str(new_version)
        return body

    async def upsert_item(self, container: str, item: dict[str, Any]) -> dict[str, Any]:
        """Create the document or replace it unconditionally."""
        body = self._to_body(item)
        if await self.read_item(container, body["id"]) is None:
            return await self.create_item(container, body)
        return await self.replace_item(container, body)

    async def delete_item(self, container: str, item_id: str) -> bool:
        """Delete a document.

        Returns:
            True if a document was deleted, False if it didn't exist
        """
        stmt = delete(Document).where(
            Document.container == container,
            Document.id == item_id,
        )
        with _store_errors("delete", container):
            result = await self.session.execute(stmt)
        return bool(result.rowcount)

    async def query_items(
        self,
        container: str,
        predicate: Predicate | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        continuation_token: str | None = None,
    ) -> QueryPage:
        """Query a container one page at a time.

        Documents are scanned in id order starting after the position
        encoded in ``continuation_token``; ``predicate`` filters them.
        The page holds at most ``limit`` matching documents.

        Args:
            container: Container name
            predicate: Optional filter applied to each document
            limit: Maximum number of documents on the page
            continuation_token: Token returned with the previous page

        Returns:
            The page and the token for the next one (None when exhausted)
        """
        limit = max(1, limit)
        last_id = (
            decode_continuation_token(continuation_token) if continuation_token else None
        )
        items: list[dict[str, Any]] = []
        exhausted = False

        while len(items) < limit and not exhausted:
            stmt = select(Document).where(Document.container == container)
            if last_id is not None:
                stmt = stmt.where(Document.id > last_id)
            stmt = (
                stmt.order_by(Document.id)
                .limit(limit)
                .execution_options(populate_existing=True)
            )

            with _store_errors("query", container):
                result = await self.session.execute(stmt)
                rows = list(result.scalars().all())

            exhausted = len(rows) < limit
            for index, row in enumerate(rows):
                last_id = row.id
                item = self._to_item(row)
                if predicate is None or predicate(item):
                    items.append(item)
                if len(items) == limit:
                    if index < len(rows) - 1:
                        exhausted = False
                    break

        token = None if exhausted or last_id is None else encode_continuation_token(last_id)
        return QueryPage(items=items, continuation_token=token)

    async def iter_items(
        self,
        container: str,
        predicate: Predicate | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> AsyncIterator[dict[str, Any]]:
        """Iterate over every matching document in a container."""
        token: str | None = None
        while True:
            page = await self.query_items(container, predicate, page_size, token)
            for item in page.items:
                yield item
            if page.continuation_token is None:
                return
            token = page.continuation_token
