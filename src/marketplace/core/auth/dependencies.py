"""FastAPI dependencies for authentication.

The bearer token identifies the user; the user document is loaded
once per request and turned into an immutable ``Principal``.
"""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from marketplace.api.dependencies import Store
from marketplace.core.auth.backend import decode_token
from marketplace.core.auth.schemas import Principal, TokenData
from marketplace.core.constants import USERS_CONTAINER
from marketplace.core.errors import ForbiddenError, UnauthorizedError
from marketplace.core.permissions.models import UserDocument


# HTTP Bearer token security scheme
bearer_scheme = HTTPBearer(auto_error=False)


async def get_token_data(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> TokenData:
    """Extract and validate token data from the Authorization header.

    Raises:
        UnauthorizedError: If the token is missing, invalid or not an access token
    """
    if not credentials:
        raise UnauthorizedError(
            "Missing authentication token",
            error_code="missing_token",
        )

    token_data = decode_token(credentials.credentials)
    if not token_data:
        raise UnauthorizedError(
            "Invalid or expired token",
            error_code="invalid_token",
        )

    if token_data.type != "access":
        raise UnauthorizedError(
            "Invalid token type",
            error_code="invalid_token_type",
        )

    return token_data


async def get_current_principal(
    request: Request,
    token_data: Annotated[TokenData, Depends(get_token_data)],
    store: Store,
) -> Principal:
    """Load the authenticated user and build the request principal.

    Raises:
        UnauthorizedError: If the user no longer exists
        ForbiddenError: If the user is deactivated or blocked
    """
    item = await store.read_item(USERS_CONTAINER, token_data.user_id)
    if item is None:
        raise UnauthorizedError(
            "User not found",
            error_code="user_not_found",
        )

    user = UserDocument.from_document(item)
    if not user.status.is_active or user.status.blocked:
        raise ForbiddenError(
            "User account is deactivated",
            error_code="user_inactive",
        )

    request.state.principal_id = user.id
    return Principal.from_user(user)


CurrentUser = Annotated[Principal, Depends(get_current_principal)]
