"""Liveness and readiness probes."""

from fastapi import APIRouter
from pydantic import BaseModel

from medgo.config import settings
from medgo.core.firebase import is_firebase_initialized
from medgo.core.realtime import change_feed
from medgo.core.redis_client import check_redis_connection
from medgo.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Readiness view; unconfigured channels do not degrade the service."""

    database: str
    redis: str
    dispatch_policy: str
    channels: dict[str, bool]
    realtime_subscribers: int


def _label(ok: bool) -> str:
    return "healthy" if ok else "unhealthy"


def configured_channels() -> dict[str, bool]:
    """Which outbound alert channels have credentials."""
    return {
        "sms": bool(settings.fast2sms_api_key),
        "email": bool(settings.resend_api_key),
        "whatsapp": bool(settings.callmebot_api_key and settings.callmebot_phone),
        "push": is_firebase_initialized(),
    }


@router.get("/health", response_model=HealthResponse, summary="Liveness probe")
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get("/health/detailed", response_model=DetailedHealthResponse, summary="Readiness probe")
async def detailed_health_check() -> DetailedHealthResponse:
    """Database and Redis reachability plus dispatch configuration."""
    db_ok = await check_database_connection()
    redis_ok = await check_redis_connection()

    return DetailedHealthResponse(
        status="healthy" if db_ok and redis_ok else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database=_label(db_ok),
        redis=_label(redis_ok),
        dispatch_policy=settings.dispatch_policy,
        channels=configured_channels(),
        realtime_subscribers=change_feed.subscriber_count,
    )


@router.get("/ping", summary="Ping")
async def ping() -> dict[str, str]:
    return {"message": "pong"}
