"""Request logging middleware.

Every request produces a ``request_started`` and a ``request_completed``
event through structlog. Completion events carry the authenticated
principal when one was resolved for the request.
"""

import time
from typing import Any

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint


logger = structlog.get_logger()

DEFAULT_EXCLUDED_PATHS = (
    "/health/live",
    "/health/ready",
    "/docs",
    "/redoc",
    "/openapi.json",
)


def get_client_ip(request: Request) -> str | None:
    """Best-effort client address, honouring proxy headers."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and latency of HTTP requests.

    Responses are logged at ``error`` for 5xx, ``warning`` for 4xx
    (denials included) and ``info`` otherwise.
    """

    def __init__(self, app: Any, exclude_paths: list[str] | None = None) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application
            exclude_paths: Path prefixes that are not logged (probes, docs)
        """
        super().__init__(app)
        self.exclude_paths = tuple(exclude_paths or DEFAULT_EXCLUDED_PATHS)

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        path = request.url.path
        if path.startswith(self.exclude_paths):
            return await call_next(request)

        started = time.perf_counter()
        method = request.method
        request_id = getattr(request.state, "request_id", None)

        start_event: dict[str, Any] = {
            "method": method,
            "path": path,
            "client_ip": get_client_ip(request),
        }
        if request.url.query:
            start_event["query"] = str(request.url.query)
        if request_id:
            start_event["request_id"] = request_id
        logger.info("request_started", **start_event)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(
                "request_failed",
                method=method,
                path=path,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                error=str(exc),
            )
            raise

        completed: dict[str, Any] = {
            "method": method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        }
        if request_id:
            completed["request_id"] = request_id

        principal_id = getattr(request.state, "principal_id", None)
        if principal_id:
            completed["principal_id"] = principal_id

        if response.status_code >= 500:
            logger.error("request_completed", **completed)
        elif response.status_code >= 400:
            logger.warning("request_completed", **completed)
        else:
            logger.info("request_completed", **completed)

        return response
