"""
Shared error-handling helpers: the API error family, the response envelope
for failures, and logging helpers that keep store details out of responses.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException


class ErrorCode:
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


_STATUS_CODES = {
    400: ErrorCode.INVALID_INPUT,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.INVALID_INPUT,
    409: ErrorCode.ALREADY_EXISTS,
    422: ErrorCode.VALIDATION_ERROR,
    429: ErrorCode.RATE_LIMIT_EXCEEDED,
}


class ApiError(HTTPException):
    """HTTP error carrying a machine-readable code for the response envelope."""

    status_code_default = 400
    code_default = ErrorCode.INVALID_INPUT

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: Any = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code or self.status_code_default, detail=message, headers=headers)
        self.code = code or self.code_default
        self.message = message
        self.details = details


class InvalidInput(ApiError):
    status_code_default = 400
    code_default = ErrorCode.INVALID_INPUT


class Unauthorized(ApiError):
    status_code_default = 401
    code_default = ErrorCode.UNAUTHORIZED


class Forbidden(ApiError):
    status_code_default = 403
    code_default = ErrorCode.FORBIDDEN


class NotFound(ApiError):
    status_code_default = 404
    code_default = ErrorCode.NOT_FOUND


class Conflict(ApiError):
    status_code_default = 409
    code_default = ErrorCode.ALREADY_EXISTS


class ValidationFailed(ApiError):
    status_code_default = 422
    code_default = ErrorCode.VALIDATION_ERROR


class RateLimited(ApiError):
    status_code_default = 429
    code_default = ErrorCode.RATE_LIMIT_EXCEEDED


class DatabaseError(ApiError):
    status_code_default = 500
    code_default = ErrorCode.DATABASE_ERROR


def _format_extra(extra: dict | None) -> str:
    if not extra:
        return ""
    parts: list[str] = []
    for key, value in extra.items():
        if value is None:
            continue
        parts.append(f"{key}={value}")
    return f" {' '.join(parts)}" if parts else ""


def log_exception(logger: logging.Logger, msg: str, *, extra: dict | None = None, exc: BaseException | None = None) -> None:
    """
    Log an exception with context. Uses logger.exception for stack traces.
    """
    suffix = _format_extra(extra)
    if exc is not None:
        logger.error(f"{msg}{suffix}: {exc}", exc_info=exc)
        return
    logger.exception(f"{msg}{suffix}")


def _is_unique_violation(exc: IntegrityError) -> bool:
    text = str(getattr(exc, "orig", exc)).lower()
    return "unique" in text or "duplicate" in text


@contextmanager
def db_guard(
    operation: str,
    logger: logging.Logger,
    *,
    db: Session | None = None,
    conflict_message: str = "Resource already exists",
) -> Iterator[None]:
    """
    Convert store failures raised inside the block into API errors.

    Unique-key violations become 409, everything else from the store becomes
    a generic 500 while the full error goes to the log only.
    """
    try:
        yield
    except ApiError:
        raise
    except IntegrityError as exc:
        if db is not None:
            db.rollback()
        if _is_unique_violation(exc):
            logger.info("%s conflict: %s", operation, exc.orig)
            raise Conflict(conflict_message) from exc
        log_exception(logger, f"{operation} failed", exc=exc)
        raise DatabaseError("Database operation failed") from exc
    except SQLAlchemyError as exc:
        if db is not None:
            db.rollback()
        log_exception(logger, f"{operation} failed", exc=exc)
        raise DatabaseError("Database operation failed") from exc


def error_body(code: str, message: str, details: Any = None) -> dict:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"success": False, "error": error}


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc, ApiError):
        body = error_body(exc.code, exc.message, exc.details)
    else:
        code = _STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
        body = error_body(code, str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body), headers=exc.headers)


def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part not in {"body", "query", "path"}),
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    body = error_body(ErrorCode.VALIDATION_ERROR, "Request validation failed", details)
    return JSONResponse(status_code=422, content=jsonable_encoder(body))


def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log_exception(
        logging.getLogger("errors"),
        "Unhandled error",
        extra={"method": request.method, "path": request.url.path},
        exc=exc,
    )
    body = error_body(ErrorCode.INTERNAL_ERROR, "Internal server error")
    return JSONResponse(status_code=500, content=body)


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
