"""
Application error taxonomy and global exception handlers.

Every handler answers ``{"detail": ..., "success": false}`` and never
includes internal error text.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(AppError):
    """Missing or malformed input, shown inline on the originating form."""

    status_code = 422
    default_detail = "Invalid input"


class UnsupportedMediaTypeError(ValidationError):
    status_code = 415
    default_detail = "Only image files are allowed!"


class PayloadTooLargeError(ValidationError):
    status_code = 413
    default_detail = "File is too large"


class ConflictError(AppError):
    status_code = 409
    default_detail = "Resource already exists"


class NotFoundError(AppError):
    status_code = 404
    default_detail = "Not found"


class AuthzError(AppError):
    status_code = 403
    default_detail = "Access denied"


class AuthenticationError(AuthzError):
    status_code = 401
    default_detail = "Not authenticated"


class StoreError(AppError):
    status_code = 500
    default_detail = "Internal database error"


async def _app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, StoreError):
        logger.error("Store error: %s", exc.__cause__ or exc, exc_info=exc.__cause__)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "success": False},
        headers=headers,
    )


def _validation_message(exc: RequestValidationError) -> str:
    """First error only, without pydantic's prefix and without echoing input."""
    errors = exc.errors()
    if not errors:
        return ValidationError.default_detail
    first = errors[0]
    message = str(first.get("msg", ValidationError.default_detail))
    if first.get("type") == "value_error":
        return message.removeprefix("Value error, ")
    field = next((str(p) for p in reversed(first.get("loc", ())) if isinstance(p, str)), None)
    if field and field not in ("body", "query", "path"):
        return f"{field}: {message}"
    return message


async def _request_validation_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"detail": _validation_message(exc), "success": False},
    )


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "success": False},
        headers=getattr(exc, "headers", None),
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=409,
        content={"detail": "Database constraint violation", "success": False},
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal database error", "success": False},
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "success": False},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
