"""Base schemas shared by documents and API payloads."""

from datetime import UTC, datetime
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from marketplace.core.database import ETAG_FIELD


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(UTC).isoformat()


class CamelModel(BaseModel):
    """Model serialized with camelCase field names.

    Python code uses snake_case attributes; documents and JSON
    payloads use camelCase. Both spellings are accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class DocumentModel(CamelModel):
    """A record persisted in the document store.

    Unknown fields written by other services are kept on round trips.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    etag: str | None = Field(default=None, alias=ETAG_FIELD)

    @classmethod
    def from_document(cls, item: dict[str, Any]) -> Self:
        """Build the model from a stored document."""
        return cls.model_validate(item)

    def to_document(self) -> dict[str, Any]:
        """Serialize for storage (the version tag is owned by the store)."""
        return self.model_dump(by_alias=True, mode="json", exclude={"etag"})
