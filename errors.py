"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

Session errors (allow-list, credentials, verification, links) always reach
the caller. Workspace initialization failures are a soft state on the
coordinator and only become WorkspaceUnavailableError at the HTTP edge.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


# ── Session errors ────────────────────────────────────────────────────────────


class NotAuthorizedError(AppError):
    status_code = 403
    error_code = "not_authorized"


class InvalidCredentialsError(AppError):
    status_code = 401
    error_code = "invalid_credentials"


class EmailVerificationRequiredError(AppError):
    status_code = 403
    error_code = "email_verification_required"


class SessionExpiredError(AppError):
    status_code = 401
    error_code = "session_expired"


# ── Verification link errors ──────────────────────────────────────────────────


class InvalidLinkError(AppError):
    status_code = 400
    error_code = "invalid_link"


class LinkExpiredError(AppError):
    status_code = 410
    error_code = "link_expired"


class LinkAlreadyUsedError(AppError):
    status_code = 409
    error_code = "link_already_used"


# ── Workspace / storage errors ────────────────────────────────────────────────


class WorkspaceUnavailableError(AppError):
    status_code = 403
    error_code = "workspace_unavailable"


class StoreError(AppError):
    status_code = 503
    error_code = "store_error"

    def __init__(
        self,
        message: str = "Something went wrong. Please try again.",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry, when initialised, captures the exception before this runs.
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
