"""Unit tests for text utilities."""

import re

from marketplace.core.constants import PERMISSION_ID_PATTERN
from marketplace.core.utils.text import generate_identifier, normalize_query


class TestGenerateIdentifier:
    """Tests for deriving catalog identifiers from names."""

    def test_simple_name(self):
        assert generate_identifier("perm_", "Export Inventory") == "perm_export_inventory"

    def test_punctuation_collapses(self):
        assert generate_identifier("role_", "listings.moderator") == "role_listings_moderator"
        assert generate_identifier("perm_", "  View -- Logs!! ") == "perm_view_logs"

    def test_truncated(self):
        identifier = generate_identifier("perm_", "x" * 200, max_length=20)

        assert len(identifier) == 20
        assert identifier.startswith("perm_")

    def test_truncation_does_not_leave_trailing_underscore(self):
        assert generate_identifier("perm_", "abc def", max_length=9) == "perm_abc"

    def test_result_matches_pattern(self):
        assert re.match(PERMISSION_ID_PATTERN, generate_identifier("perm_", "Manage Users"))


class TestNormalizeQuery:
    def test_normalizes(self):
        assert normalize_query("  Dealer ") == "dealer"

    def test_none(self):
        assert normalize_query(None) == ""
