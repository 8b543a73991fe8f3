"""Domain errors and the handlers that turn them into response envelopes.

Learn: Services raise AppError subclasses; they never build HTTP
responses themselves. The handlers registered in create_app() convert
every error — ours, FastAPI's validation errors, Starlette's HTTP
errors, and anything unexpected — into the same JSON shape:

    {"success": false, "message": "..."}

so clients only ever parse one envelope.
"""

from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger()


class AppError(Exception):
    """Base class for all application errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed or missing input."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class ConflictError(AppError):
    """Duplicate username or email."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Username or Email is already in use"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidCredentialsError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid credentials"


class UnauthorizedError(AppError):
    """Missing, invalid, expired, or rotated-out token.

    The message is deliberately generic — callers must not learn which
    check failed.
    """

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid or expired token"


class UploadFailedError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Cloud upload failed. Please try again."


# ─── Envelope ────────────────────────────────────────────


def envelope(
    message: str,
    data: Optional[dict[str, Any]] = None,
    meta: Optional[dict[str, Any]] = None,
    success: bool = True,
) -> dict[str, Any]:
    """Build the response envelope shared by every endpoint."""
    body: dict[str, Any] = {"success": success, "message": message}
    if data is not None:
        body["data"] = data
    if meta is not None:
        body["meta"] = meta
    return body


def _error_response(
    status_code: int, message: str, data: Optional[dict[str, Any]] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=envelope(message, data=data, success=False),
    )


# ─── Handlers ────────────────────────────────────────────


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return _error_response(exc.status_code, exc.message)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Request body/query validation → 400 with the first error as message."""
    errors = jsonable_encoder(exc.errors())
    message = "Invalid request"
    if errors:
        first = errors[0]
        message = str(first.get("msg", message))
        if first.get("type") == "value_error":
            # Our own validators already phrase a full sentence
            message = message.removeprefix("Value error, ")
        else:
            field = ".".join(str(p) for p in first.get("loc", ())[1:])
            if field:
                message = f"{field}: {message}"
    return _error_response(
        status.HTTP_400_BAD_REQUEST, message, data={"errors": errors}
    )


async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    response = _error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "request.unhandled_error",
        method=request.method,
        path=request.url.path,
    )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
