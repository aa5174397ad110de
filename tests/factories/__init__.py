"""Test factories for generating test data."""

from tests.factories.documents import (
    PermissionDocumentFactory,
    RoleDocumentFactory,
    UserDocumentFactory,
)


__all__ = [
    "PermissionDocumentFactory",
    "RoleDocumentFactory",
    "UserDocumentFactory",
]
