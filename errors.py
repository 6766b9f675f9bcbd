"""
Error kinds surfaced by the API and the handlers that render them.

Every error leaves the service in the same envelope:

    {"status": "error", "message": "...", "error": "<ErrorKind>"}
"""

import logging
from enum import Enum

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from config import DEBUG

logger = logging.getLogger("ledger-api")


class ErrorKind(str, Enum):
    VALIDATION = "ValidationError"
    AUTH = "AuthError"
    FORBIDDEN = "ForbiddenError"
    NOT_FOUND = "NotFoundError"
    UNKNOWN = "UnknownError"


class AppError(Exception):
    kind = ErrorKind.UNKNOWN
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION
    status_code = 422
    default_message = "The given data was invalid"


class AuthError(AppError):
    kind = ErrorKind.AUTH
    status_code = 401
    default_message = "Unauthenticated"


class ForbiddenError(AppError):
    kind = ErrorKind.FORBIDDEN
    status_code = 403
    default_message = "This action is unauthorized"


class NotFoundError(AppError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "Resource not found"


class UnknownError(AppError):
    pass


def error_body(kind: ErrorKind, message: str, **extra) -> dict:
    body = {"status": "error", "message": message, "error": kind.value}
    body.update(extra)
    return body


def _field_name(loc) -> str:
    # drop the "body"/"query" prefix FastAPI puts in front of the field path
    parts = [str(p) for p in loc[1:]] if len(loc) > 1 else [str(p) for p in loc]
    return ".".join(parts)


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.kind, exc.message),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": _field_name(err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=ValidationError.status_code,
        content=error_body(
            ErrorKind.VALIDATION, ValidationError.default_message, errors=errors
        ),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    detail = str(exc) if DEBUG else ErrorKind.UNKNOWN.value
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Something went wrong", "error": detail},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
