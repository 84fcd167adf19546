"""
API error classes and the exception handlers that turn them into the JSON envelope.
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError, NoResultFound, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.utils.responses import error_response
from config import IS_PRODUCTION

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details


class BadRequestError(ApiError):
    status_code = 400
    code = "BAD_REQUEST"


class ValidationError(ApiError):
    status_code = 422
    code = "VALIDATION_ERROR"


class AuthenticationError(ApiError):
    status_code = 401
    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(message, **kwargs)


class AuthorizationError(ApiError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"

    def __init__(self, message: str = "Insufficient permissions", **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", **kwargs):
        super().__init__(f"{resource} not found", **kwargs)


class ConflictError(ApiError):
    status_code = 409
    code = "CONFLICT"


class RateLimitError(ApiError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, message: str = "Rate limit exceeded", **kwargs):
        super().__init__(message, **kwargs)


class DatabaseError(ApiError):
    status_code = 500
    code = "DATABASE_ERROR"


class ExternalServiceError(ApiError):
    status_code = 503
    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service: str, message: Optional[str] = None, **kwargs):
        super().__init__(message or f"{service} service unavailable", **kwargs)
        self.service = service


def map_database_error(exc: SQLAlchemyError) -> ApiError:
    """Translate a SQLAlchemy error into the matching ApiError."""
    if isinstance(exc, NoResultFound):
        return NotFoundError()

    if isinstance(exc, IntegrityError):
        text = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
        pgcode = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
        if pgcode == "23505" or "unique" in text or "duplicate" in text:
            return ConflictError("Resource already exists", details=None if IS_PRODUCTION else text)
        if pgcode == "23503" or "foreign key" in text:
            return BadRequestError("Referenced resource does not exist", details=None if IS_PRODUCTION else text)
        if pgcode == "23502" or "not null" in text:
            return BadRequestError("Required field is missing", details=None if IS_PRODUCTION else text)

    message = "Database operation failed" if IS_PRODUCTION else f"Database operation failed: {exc}"
    return DatabaseError(message)


def _status_code_name(status_code: int) -> str:
    return {
        400: "BAD_REQUEST",
        401: "AUTHENTICATION_ERROR",
        403: "AUTHORIZATION_ERROR",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
        429: "RATE_LIMIT_EXCEEDED",
        503: "EXTERNAL_SERVICE_ERROR",
    }.get(status_code, "INTERNAL_ERROR" if status_code >= 500 else "ERROR")


async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    message = exc.message
    if IS_PRODUCTION and exc.status_code == 500:
        message = "Internal server error"
    return error_response(message, status=exc.status_code, code=exc.code, details=exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(str(exc.detail), status=exc.status_code, code=_status_code_name(exc.status_code))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    return error_response("Validation failed", status=422, code="VALIDATION_ERROR", details=details)


async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    mapped = map_database_error(exc)
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return await api_error_handler(request, mapped)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
