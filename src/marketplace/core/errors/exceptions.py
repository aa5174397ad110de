"""Application errors raised by stores, services and route gates.

Each error knows its HTTP status and a machine-readable ``error_code``;
the handlers in ``marketplace.core.errors.handlers`` render them as
RFC 7807 Problem Details. A negative permission check is a normal
result, not an error: only the gating layer raises ``ForbiddenError``.
"""

from typing import Any


class AppException(Exception):
    """Base class of every error the API reports to clients.

    Attributes:
        message: Human-readable explanation
        error_code: Stable identifier clients can branch on
        status_code: HTTP status of the response
        details: Extra members merged into the problem document
    """

    message: str = "An unexpected error occurred"
    error_code: str = "internal_error"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================
# Client errors
# ============================================================


class BadRequestError(AppException):
    """The request is well formed but not allowed in the current state.

    Example:
        raise BadRequestError("Built-in roles cannot be deleted", error_code="protected_role")
    """

    message = "Bad request"
    error_code = "bad_request"
    status_code = 400


class ValidationError(AppException):
    """Input breaks a catalog or assignment rule.

    ``errors`` lists the offending fields as ``{"field", "message"}``
    pairs and is rendered as the ``errors`` member of the response.

    Example:
        raise ValidationError(
            "Invalid permission",
            errors=[{"field": "id", "message": "Must match ^perm_[a-z0-9_]+$"}],
        )
    """

    message = "Validation error"
    error_code = "validation_error"
    status_code = 400

    def __init__(
        self,
        message: str | None = None,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if errors:
            details["errors"] = errors
        super().__init__(message=message, details=details, **kwargs)


class UnauthorizedError(AppException):
    """No principal could be established for the request."""

    message = "Authentication required"
    error_code = "unauthorized"
    status_code = 401


class ForbiddenError(AppException):
    """The principal lacks a required permission, role or ownership.

    Example:
        raise ForbiddenError(
            "Missing required permissions: perm_assign_roles",
            error_code="permission_denied",
            details={"required_permissions": ["perm_assign_roles"]},
        )
    """

    message = "Access forbidden"
    error_code = "forbidden"
    status_code = 403


class NotFoundError(AppException):
    """A user, role or permission doesn't exist.

    Example:
        raise NotFoundError("Role not found", resource="role", resource_id=role_id)
    """

    message = "Resource not found"
    error_code = "not_found"
    status_code = 404

    def __init__(
        self,
        message: str | None = None,
        resource: str | None = None,
        resource_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {})
        if resource:
            details["resource"] = resource
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message=message, details=details, **kwargs)


class ConflictError(AppException):
    """The write collides with existing data (duplicate id or name, id in use)."""

    message = "Resource conflict"
    error_code = "conflict"
    status_code = 409


class PreconditionFailedError(AppException):
    """A conditional write lost against a concurrent update.

    ``details`` carries the expected and the current version tag.
    """

    message = "Resource was modified by another request"
    error_code = "precondition_failed"
    status_code = 412


# ============================================================
# Server errors
# ============================================================


class ServiceUnavailableError(AppException):
    """A backing service can't answer right now; the client may retry."""

    message = "Service temporarily unavailable"
    error_code = "service_unavailable"
    status_code = 503


class RetrievalError(ServiceUnavailableError):
    """The document store failed to answer a read or write.

    Authorization decisions propagate this error instead of
    defaulting to an allow result.
    """

    message = "Document store request failed"
    error_code = "retrieval_error"
