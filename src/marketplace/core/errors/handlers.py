"""RFC 7807 Problem Details exception handlers.

Every error leaving the service is rendered as a Problem Details
document, so clients can tell a missing principal (401), a denial
(403), a missing resource (404), malformed input (400/422) and a store
outage (503) apart by ``status`` and by the last segment of ``type``.

See: https://tools.ietf.org/html/rfc7807
"""

from typing import TYPE_CHECKING, Any, cast

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from marketplace.config import settings
from marketplace.core.errors.exceptions import AppException, RetrievalError


if TYPE_CHECKING:
    from starlette.types import ExceptionHandler


logger = structlog.get_logger()

REQUEST_VALIDATION_STATUS = 422
INTERNAL_ERROR_STATUS = 500
RETRY_AFTER_SECONDS = "1"


class FieldError(BaseModel):
    """One offending input field."""

    field: str
    message: str
    type: str | None = None


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details response schema.

    Attributes:
        type: URI whose last segment is the error code
        title: Short human-readable summary
        status: HTTP status code
        detail: Explanation specific to this occurrence
        instance: Request path
        errors: Field-level errors (validation failures only)
        trace_id: Request trace ID for correlating logs
    """

    type: str
    title: str
    status: int
    detail: str
    instance: str | None = None
    errors: list[FieldError] | None = None
    trace_id: str | None = None

    model_config = {"extra": "allow"}


def _problem(
    request: Request,
    status: int,
    error_code: str,
    detail: str,
    errors: list[FieldError] | None = None,
    extra: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = ProblemDetail(
        type=f"{settings.api_docs_base_url}/errors/{error_code}",
        title=error_code.replace("_", " ").title(),
        status=status,
        detail=detail,
        instance=str(request.url.path),
        errors=errors,
        trace_id=getattr(request.state, "trace_id", None),
    ).model_dump(exclude_none=True)

    # Extra members never overwrite the standard ones
    for key, value in (extra or {}).items():
        content.setdefault(key, value)

    return JSONResponse(status_code=status, content=content, headers=headers)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Render an AppException.

    Server-side failures (5xx) are logged at error level, client errors
    at warning level. Store failures carry a ``Retry-After`` hint; the
    service itself never retries them.
    """
    log = logger.error if exc.status_code >= INTERNAL_ERROR_STATUS else logger.warning
    log(
        "app_exception",
        error_code=exc.error_code,
        message=exc.message,
        status_code=exc.status_code,
        path=str(request.url.path),
        details=exc.details,
    )

    return _problem(
        request,
        exc.status_code,
        exc.error_code,
        exc.message,
        extra=exc.details,
        headers=(
            {"Retry-After": RETRY_AFTER_SECONDS}
            if isinstance(exc, RetrievalError)
            else None
        ),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request-shape errors caught by FastAPI before any handler runs."""
    errors = [
        FieldError(
            # "body"/"query" prefixes are noise for clients
            field=".".join(
                str(part) for part in error.get("loc", ()) if part not in ("body", "query")
            )
            or "unknown",
            message=error.get("msg", "Invalid value"),
            type=error.get("type"),
        )
        for error in exc.errors()
    ]

    logger.warning(
        "request_validation_error",
        path=str(request.url.path),
        error_count=len(errors),
    )

    return _problem(
        request,
        REQUEST_VALIDATION_STATUS,
        "request_validation_error",
        "Request validation failed",
        errors=errors,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render anything unexpected as a bare 500; the cause is only logged."""
    logger.exception(
        "unhandled_exception",
        path=str(request.url.path),
        error_type=type(exc).__name__,
    )

    return _problem(
        request,
        INTERNAL_ERROR_STATUS,
        "internal_error",
        "An unexpected error occurred",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(
        AppException, cast("ExceptionHandler", app_exception_handler)
    )
    app.add_exception_handler(
        RequestValidationError, cast("ExceptionHandler", validation_exception_handler)
    )
    app.add_exception_handler(Exception, generic_exception_handler)
