from __future__ import annotations

import logging
from typing import Any, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .responses import send_error
from .storage import DuplicateKeyError, InvalidIdentifier
from .tokens import ExpiredToken, InvalidToken

_logger = logging.getLogger(__name__)


class ApiError(Exception):
    """An expected failure that maps straight onto an error envelope."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, error: Any = None) -> None:
        self.message = message or self.default_message
        self.error = error
        super().__init__(self.message)


class BadRequest(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class Unauthorized(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized access"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class Conflict(ApiError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class ValidationFailed(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation Error"


class InternalError(ApiError):
    pass


def _field_messages(errors: List[dict]) -> List[str]:
    messages = []
    for item in errors:
        location = [str(part) for part in item.get("loc", ()) if part not in ("body", "query", "path")]
        label = ".".join(location)
        message = item.get("msg", "Invalid value")
        messages.append(f"{label}: {message}" if label else message)
    return messages


def translate(exc: Exception) -> JSONResponse:
    """Turn any exception into an error envelope.

    Known failures get their own status and message, everything else is a 500.
    """

    if isinstance(exc, ApiError):
        return send_error(exc.message, exc.error, exc.status_code)
    if isinstance(exc, InvalidIdentifier):
        return send_error("Resource not found", None, status.HTTP_404_NOT_FOUND)
    if isinstance(exc, DuplicateKeyError):
        return send_error(f"{exc.field} already exists", None, status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, (RequestValidationError, ValidationError)):
        return send_error("Validation Error", _field_messages(exc.errors()), status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, ExpiredToken):
        return send_error("Token expired", None, status.HTTP_401_UNAUTHORIZED)
    if isinstance(exc, InvalidToken):
        return send_error("Invalid token", None, status.HTTP_401_UNAUTHORIZED)
    if isinstance(exc, StarletteHTTPException):
        return send_error(str(exc.detail), None, exc.status_code)
    _logger.error("Unhandled error: %s", exc, exc_info=exc)
    return send_error("Internal Server Error", None, status.HTTP_500_INTERNAL_SERVER_ERROR)


async def _handle(request: Request, exc: Exception) -> JSONResponse:
    return translate(exc)


async def _handle_http(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        return send_error(f"Route {request.url.path} not found", None, status.HTTP_404_NOT_FOUND)
    return translate(exc)


def install_error_handlers(app: FastAPI) -> None:
    for exc_class in (
        ApiError,
        InvalidIdentifier,
        DuplicateKeyError,
        RequestValidationError,
        ValidationError,
        InvalidToken,
        ExpiredToken,
    ):
        app.add_exception_handler(exc_class, _handle)
    app.add_exception_handler(StarletteHTTPException, _handle_http)
