"""Application-wide constants.

This module defines constants used throughout the application
to avoid magic numbers and ensure consistency.
"""

# Document store containers
PERMISSIONS_CONTAINER = "permissions"
ROLES_CONTAINER = "roles"
USERS_CONTAINER = "users"
MAX_CONTAINER_NAME_LENGTH = 64
MAX_DOCUMENT_ID_LENGTH = 128

# Identifier patterns
PERMISSION_ID_PATTERN = r"^perm_[a-z0-9_]+$"
ROLE_ID_PATTERN = r"^role_[a-z0-9_]+$"
PERMISSION_ID_PREFIX = "perm_"
ROLE_ID_PREFIX = "role_"
MAX_IDENTIFIER_LENGTH = 64

# String field lengths
MIN_CATALOG_TEXT_LENGTH = 3
MAX_CATEGORY_LENGTH = 50
MAX_PERMISSION_NAME_LENGTH = 100
MAX_ROLE_NAME_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 255
MAX_NAME_LENGTH = 255

# Role scopes (only one is supported today)
ROLE_SCOPE_SYSTEM = "system"

# Pagination defaults
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Suggestions
DEFAULT_SUGGESTION_LIMIT = 10
MAX_SUGGESTION_LIMIT = 50

# Batch limits
MAX_ATTACH_PERMISSIONS = 100

# Token settings
ACCESS_TOKEN_JTI_LENGTH = 32

# Secret key requirements
MIN_SECRET_KEY_LENGTH = 32
DEFAULT_INSECURE_SECRET = "change-me-in-production"
