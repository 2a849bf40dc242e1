"""Structured logging setup and the request logging middleware."""

import logging
import sys
import time
import uuid
from collections.abc import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from medgo.config import settings

# Probes and scrapes would drown out dispatch traffic
QUIET_PATHS = frozenset({"/metrics", "/api/v1/health", "/api/v1/ping"})


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """
    Route structlog through stdlib logging with a JSON or console renderer.

    Defaults come from ``LOG_LEVEL`` and ``LOG_FORMAT``.
    """
    level = (level or settings.log_level).upper()
    log_format = log_format or settings.log_format

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=getattr(logging, level))


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Log each HTTP request with a correlation id.

    The id is taken from ``X-Request-ID`` when the caller sends one, bound
    to structlog's context for the duration of the request and echoed back.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        """Log request and response details."""
        logger = structlog.get_logger()
        http_request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        quiet = request.url.path in QUIET_PATHS

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(http_request_id=http_request_id)

        start_time = time.perf_counter()
        if not quiet:
            logger.info(
                "request_started",
                method=request.method,
                path=request.url.path,
                client=request.client.host if request.client else None,
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                duration=time.perf_counter() - start_time,
            )
            raise
        finally:
            structlog.contextvars.unbind_contextvars("http_request_id")

        duration = time.perf_counter() - start_time
        if not quiet:
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration=duration,
                http_request_id=http_request_id,
            )

        response.headers["X-Process-Time"] = str(duration)
        response.headers["X-Request-ID"] = http_request_id
        return response
