"""Text processing utilities."""

import re

from marketplace.core.constants import MAX_IDENTIFIER_LENGTH


def generate_identifier(
    prefix: str,
    name: str,
    max_length: int = MAX_IDENTIFIER_LENGTH,
) -> str:
    """Generate a namespaced catalog identifier from a display name.

    Converts the input string to the ``<prefix><slug>`` form used for
    permission and role ids by:
    - Converting to lowercase
    - Replacing every run of non-alphanumeric characters with "_"
    - Stripping leading/trailing underscores
    - Truncating to max_length (prefix included)

    Args:
        prefix: Namespace prefix such as "perm_" or "role_"
        name: The display name to derive the identifier from
        max_length: Maximum length of the identifier

    Returns:
        Identifier matching ``^<prefix>[a-z0-9_]+$`` when the name has at
        least one alphanumeric character; callers validate the result

    Examples:
        >>> generate_identifier("perm_", "Export Inventory")
        'perm_export_inventory'
        >>> generate_identifier("role_", "listings.moderator")
        'role_listings_moderator'
    """
    slug = re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")
    return f"{prefix}{slug}"[:max_length].rstrip("_")


def normalize_query(text: str | None) -> str:
    """Lowercase and trim a free-text search query."""
    return (text or "").strip().lower()
