"""
Error taxonomy and FastAPI exception handlers.

Every expected failure of the authorization/lifecycle core is a
``TaskhubError`` with an HTTP status and a machine-readable ``error_code``.
Only ``ConfigurationError`` is fatal: it is raised while loading the
permission table and aborts application startup.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from taskhub.authz.gate import Decision

logger = logging.getLogger(__name__)


class TaskhubError(Exception):
    """Base class for expected, locally handled failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, *, error_code: str | None = None, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.context = dict(context or {})

    @property
    def public_message(self) -> str:
        """Message safe to return to the caller."""
        return self.message


class ConfigurationError(TaskhubError, ValueError):
    """Raised when the permission table is incomplete or malformed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "CONFIGURATION_ERROR"


class AuthenticationError(TaskhubError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "AUTHENTICATION_ERROR"


class NotFound(TaskhubError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND_ERROR"


class AuthorizationDenied(TaskhubError):
    """
    The gate said no.

    The decision's ``reason`` is kept for audit logs only; callers always get
    the same generic message regardless of why access was refused.
    """

    status_code = status.HTTP_403_FORBIDDEN
    error_code = "AUTHORIZATION_ERROR"

    def __init__(self, decision: Decision, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(decision.message, context=context)
        self.decision = decision

    @property
    def reason(self) -> str:
        return self.decision.reason.value

    @property
    def public_message(self) -> str:
        return "You do not have permission to perform this action"


class LifecycleConflict(TaskhubError):
    """Transition requested from the wrong state (``ALREADY_DELETED`` / ``NOT_DELETED``)."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "LIFECYCLE_CONFLICT"


class IntegrityBlocked(TaskhubError):
    """A delete/restore would leave the entity graph inconsistent."""

    status_code = status.HTTP_400_BAD_REQUEST


class TenantViolation(IntegrityBlocked):
    """The acting principal and the entity belong to different organizations."""

    status_code = status.HTTP_403_FORBIDDEN
    error_code = "CROSS_ORG_VIOLATION"


def _error_body(exc: TaskhubError) -> dict[str, Any]:
    return {
        "success": False,
        "status_code": exc.status_code,
        "error_code": exc.error_code,
        "message": exc.public_message,
    }


def register_exception_handlers(app: FastAPI) -> None:
    """Render every ``TaskhubError`` as a JSON 4xx response."""

    @app.exception_handler(TaskhubError)
    async def taskhub_error_handler(request: Request, exc: TaskhubError) -> JSONResponse:
        principal = getattr(request.state, "principal", None)
        principal_id = getattr(principal, "id", None)

        if isinstance(exc, TenantViolation):
            logger.error(
                "Tenant boundary violation path=%s method=%s principal=%s context=%s",
                request.url.path,
                request.method,
                principal_id,
                exc.context,
            )
        elif isinstance(exc, AuthorizationDenied):
            logger.warning(
                "Access denied path=%s method=%s principal=%s reason=%s",
                request.url.path,
                request.method,
                principal_id,
                exc.reason,
            )
        elif exc.status_code >= 500:
            logger.error("Unexpected %s path=%s: %s", type(exc).__name__, request.url.path, exc.message)
        else:
            logger.info(
                "Request rejected path=%s method=%s code=%s",
                request.url.path,
                request.method,
                exc.error_code,
            )

        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))
