"""Request tracing middleware.

- ``RequestIdMiddleware`` assigns every request an id
- ``PrincipalContextMiddleware`` binds the token subject to the log context
"""

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from marketplace.core.auth.backend import decode_token


if TYPE_CHECKING:
    from starlette.types import ASGIApp


class PrincipalContextMiddleware(BaseHTTPMiddleware):
    """Bind the bearer token subject to ``request.state`` and structlog.

    Only the token is decoded here; the user document is loaded by
    the ``get_current_principal`` dependency on protected routes.
    """

    def __init__(
        self,
        app: "ASGIApp",
        exclude_paths: list[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.exclude_paths = tuple(
            exclude_paths or ["/health", "/docs", "/redoc", "/openapi.json"]
        )

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path.startswith(self.exclude_paths):
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token_data = decode_token(auth_header.split(" ", 1)[1])
            if token_data:
                request.state.principal_id = token_data.user_id
                structlog.contextvars.bind_contextvars(user_id=token_data.user_id)

        return await call_next(request)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Give each request an id.

    The id is taken from the ``X-Request-ID`` header when present,
    stored on ``request.state``, echoed in the response header and
    bound to the structlog context for the duration of the request.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.trace_id = request_id

        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id", "user_id")

        response.headers["X-Request-ID"] = request_id
        return response
