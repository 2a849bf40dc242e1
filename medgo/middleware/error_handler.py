"""Exception handlers rendering every error as ``{error, message, path}``."""

from typing import Any

import structlog
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from medgo.core.exceptions import AppException

logger = structlog.get_logger(__name__)


def error_response(
    request: Request,
    status_code: int,
    error: str,
    message: Any,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    """Build the JSON error body shared by all handlers."""
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, **extra, "path": request.url.path},
        headers=headers,
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Render application exceptions with their own status code."""
    if exc.status_code >= 500:
        logger.warning(
            "upstream_error_returned",
            path=request.url.path,
            error=exc.__class__.__name__,
            message=exc.message,
        )
    return error_response(request, exc.status_code, exc.__class__.__name__, exc.message)


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Render framework HTTP errors (unknown routes, missing bearer, ...)."""
    return error_response(
        request,
        exc.status_code,
        "HTTPException",
        exc.detail,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Render request validation errors as 400.

    Malformed coordinates, radii and phone payloads are ordinary bad
    requests for API clients, so FastAPI's 422 is not used.
    """
    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "ValidationError",
        "Request validation failed",
        details=jsonable_encoder(exc.errors()),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log anything unexpected and hide the details from the client."""
    logger.error(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        error=str(exc),
        exc_info=exc,
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "InternalServerError",
        "An unexpected error occurred",
    )
