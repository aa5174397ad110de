"""Database layer: session management and the JSON document store."""

from marketplace.core.database.documents import (
    ETAG_FIELD,
    Base,
    Document,
    DocumentStore,
    QueryPage,
)
from marketplace.core.database.session import (
    async_engine,
    async_session_factory,
    create_schema,
    get_db,
)


__all__ = [
    "ETAG_FIELD",
    "Base",
    "Document",
    "DocumentStore",
    "QueryPage",
    "async_engine",
    "async_session_factory",
    "create_schema",
    "get_db",
]
