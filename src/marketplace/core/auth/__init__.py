"""Authentication: bearer tokens and the request principal."""

from marketplace.core.auth.backend import create_access_token, decode_token
from marketplace.core.auth.schemas import Principal, TokenData


__all__ = [
    "Principal",
    "TokenData",
    "create_access_token",
    "decode_token",
]
