"""Helpers shared by test modules."""

from marketplace.core.auth import create_access_token


def auth_headers_for(user_id: str) -> dict[str, str]:
    """Authorization header carrying a valid access token for ``user_id``."""
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}
