from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import HTTP_422_UNPROCESSABLE_ENTITY, HTTP_500_INTERNAL_SERVER_ERROR

logger = logging.getLogger(__name__)


class DelphiException(Exception):
    """Base exception for Delphi.

    HTTP handlers let these propagate so the registered exception handlers can
    render them; the realtime router turns them into `error` envelopes instead.
    """

    status_code: int = 400
    default_code: str | None = None

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: Any | None = None,
    ) -> None:
        self.message = message
        self.code = code if code is not None else self.default_code
        self.status_code = status_code if status_code is not None else self.status_code
        self.details = details
        super().__init__(message)


class ConfigurationError(DelphiException):
    """Raised when configuration is invalid (server-side)."""

    status_code = 500
    default_code = "configuration_error"


class AuthenticationError(DelphiException):
    """Raised when a request carries no valid session."""

    status_code = 401
    default_code = "unauthorized"


class PermissionDeniedError(DelphiException):
    status_code = 403
    default_code = "forbidden"


class NotFoundError(DelphiException):
    status_code = 404
    default_code = "not_found"


class ConflictError(DelphiException):
    status_code = 409
    default_code = "conflict"


class EnvelopeValidationError(DelphiException):
    """Raised when a realtime envelope is malformed or incomplete."""

    status_code = 400
    default_code = "invalid_envelope"


class GroupNotFoundError(NotFoundError):
    default_code = "group_not_found"


class MembershipRequiredError(PermissionDeniedError):
    default_code = "membership_required"


class AlreadyMemberError(ConflictError):
    default_code = "already_member"


class EmptyContentError(EnvelopeValidationError):
    default_code = "empty_content"


def _json_error(
    status_code: int,
    *,
    error: str,
    type_: str,
    code: str | None = None,
    details: Any | None = None,
) -> JSONResponse:
    payload: dict[str, Any] = {"error": error, "code": code, "type": type_}
    if details is not None:
        payload["details"] = details
    return JSONResponse(status_code=status_code, content=payload)


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as `{error, code, type, details?}`."""

    @app.exception_handler(DelphiException)
    async def _on_delphi_error(_request: Request, exc: DelphiException) -> JSONResponse:
        return _json_error(
            exc.status_code,
            error=exc.message,
            code=exc.code,
            type_=type(exc).__name__,
            details=exc.details,
        )

    @app.exception_handler(RequestValidationError)
    async def _on_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return _json_error(
            HTTP_422_UNPROCESSABLE_ENTITY,
            error="Validation error",
            code="validation_error",
            type_=type(exc).__name__,
            details=jsonable_encoder(exc.errors()),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _on_http_error(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail
        return _json_error(
            exc.status_code,
            error=detail if isinstance(detail, str) else "Request failed",
            code="http_exception",
            type_=type(exc).__name__,
            details=None if isinstance(detail, str) else detail,
        )

    @app.exception_handler(Exception)
    async def _on_unhandled_error(_request: Request, exc: Exception) -> JSONResponse:
        # Never leak internals; the traceback goes to the log only.
        logger.exception("Unhandled exception: %s", exc)
        return _json_error(
            HTTP_500_INTERNAL_SERVER_ERROR,
            error="Internal server error",
            code="internal_error",
            type_="InternalServerError",
        )


__all__ = [
    "AlreadyMemberError",
    "AuthenticationError",
    "ConfigurationError",
    "ConflictError",
    "DelphiException",
    "EmptyContentError",
    "EnvelopeValidationError",
    "GroupNotFoundError",
    "MembershipRequiredError",
    "NotFoundError",
    "PermissionDeniedError",
    "register_exception_handlers",
]
