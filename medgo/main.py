"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from medgo.api.v1.router import api_router
from medgo.config import settings
from medgo.core.exceptions import AppException
from medgo.core.firebase import initialize_firebase
from medgo.core.realtime import change_feed
from medgo.core.redis_client import close_redis_connection, get_redis_client
from medgo.database import check_database_connection, engine
from medgo.middleware.error_handler import (
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from medgo.middleware.logging import LoggingMiddleware, configure_logging

# Configure logging
configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info(
        "application_startup",
        environment=settings.environment,
        dispatch_policy=settings.dispatch_policy,
    )

    # Push channel is optional
    try:
        initialize_firebase(settings.firebase_credentials_path, settings.firebase_config_json)
    except Exception as e:
        logger.warning("firebase_initialization_failed", error=str(e))

    if await check_database_connection():
        logger.info("database_connected")
    else:
        logger.error("database_connection_failed")

    try:
        redis_client = get_redis_client()
        redis_client.ping()
        logger.info("redis_connected")
        if settings.realtime_redis_enabled:
            change_feed.attach_redis(redis_client)
            logger.info("realtime_redis_mirror_enabled", channel=settings.realtime_redis_channel)
    except Exception as e:
        logger.error("redis_connection_failed", error=str(e))

    yield

    logger.info("application_shutdown")

    change_feed.attach_redis(None)

    await engine.dispose()
    logger.info("database_connections_closed")

    close_redis_connection()
    logger.info("redis_connection_closed")


def register_exception_handlers(app: FastAPI) -> None:
    """Route every error through the JSON error renderer."""
    handlers = {
        AppException: app_exception_handler,
        StarletteHTTPException: http_exception_handler,
        RequestValidationError: validation_exception_handler,
        Exception: general_exception_handler,
    }
    for exc_class, handler in handlers.items():
        app.add_exception_handler(exc_class, handler)  # type: ignore[arg-type]


def create_app() -> FastAPI:
    """Build the dispatch API with middleware, routes and metrics."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Ambulance dispatch, driver coordination and delivery tracking for MedGo",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(api_router, prefix=settings.api_v1_prefix)

    @app.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        """Service banner."""
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "docs": "/docs",
        }

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=False,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/docs", "/redoc", "/openapi.json", "/metrics"],
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True,
    ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "medgo.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
