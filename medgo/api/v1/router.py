"""API v1 router configuration."""

from fastapi import APIRouter

from medgo.api.v1.endpoints import (
    dispatch,
    drivers,
    health,
    notifications,
    push_tokens,
    realtime,
    sms,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["Health"])
api_router.include_router(dispatch.router)
api_router.include_router(drivers.router)
api_router.include_router(notifications.router)
api_router.include_router(sms.router)
api_router.include_router(push_tokens.router)
api_router.include_router(realtime.router)
