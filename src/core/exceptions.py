"""
FILE: src/core/exceptions.py
Error taxonomy and the handlers that render it as JSON
"""

import logging
from typing import Any, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

GENERIC_AUTH_ERROR = "Invalid credentials"


class AppException(Exception):
    """Base class for every error the API reports to clients."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"
    code: Optional[str] = None

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[List[Any]] = None,
        code: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.details = details
        if code is not None:
            self.code = code
        super().__init__(self.message)


class InputInvalid(AppException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"


class AuthRequired(AppException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"
    code = "AUTH_REQUIRED"


class TokenExpired(AuthRequired):
    default_message = "Token expired"
    code = "TOKEN_EXPIRED"


class TokenMalformed(AuthRequired):
    default_message = "Invalid token"
    code = "TOKEN_MALFORMED"


class TokenRevoked(AuthRequired):
    default_message = "Token has been revoked"
    code = "TOKEN_REVOKED"


class AuthFailed(AppException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = GENERIC_AUTH_ERROR


class Forbidden(AppException):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class TenantUnresolved(Forbidden):
    default_message = "Tenant context required"
    code = "TENANT_UNRESOLVED"


class NotFound(AppException):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(AppException):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Already exists"


class RateLimited(AppException):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many attempts. Try again later."


class Internal(AppException):
    pass


def _render(exc: AppException) -> JSONResponse:
    body: dict = {"success": False, "error": exc.message}
    if exc.code:
        body["code"] = exc.code
    if exc.details:
        body["details"] = exc.details
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return _render(exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
            "message": err.get("msg"),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    return _render(InputInvalid(details=details))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _render(Internal())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
