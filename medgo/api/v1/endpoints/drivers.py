"""Driver endpoints: availability, nearby search, inbox and history."""

from typing import Literal

from fastapi import APIRouter, Query

from medgo.config import settings
from medgo.core.exceptions import BadRequestException, NotFoundException
from medgo.core.geo import Coordinates
from medgo.dependencies import CurrentDriver, CurrentUser, DatabaseSession
from medgo.schemas.drivers import (
    DriverStatusResponse,
    DriverStatusUpdate,
    NearbyDriver,
    NearbyDriversResponse,
)
from medgo.schemas.notifications import (
    AmbulanceNotificationRecord,
    DriverHistoryRecord,
    DriverHistoryResponse,
    NotificationListResponse,
)
from medgo.services.driver_service import DriverService
from medgo.services.notification_service import NotificationService

router = APIRouter(prefix="/drivers", tags=["Drivers"])


@router.get(
    "/nearby",
    response_model=NearbyDriversResponse,
    summary="Find available drivers near a point",
)
async def find_nearby_drivers(
    current_user: CurrentUser,
    db: DatabaseSession,
    lat: float = Query(..., ge=-90, le=90, description="Latitude"),
    lng: float = Query(..., ge=-180, le=180, description="Longitude"),
    radius_km: float | None = Query(None, gt=0, description="Search radius in kilometres"),
) -> NearbyDriversResponse:
    """
    List available drivers within the radius, nearest first.

    Raises:
        BadRequestException: If the radius exceeds the configured maximum
    """
    radius = radius_km if radius_km is not None else settings.dispatch_radius_km
    if radius > settings.max_dispatch_radius_km:
        raise BadRequestException(f"radius_km must not exceed {settings.max_dispatch_radius_km}")

    drivers = await DriverService.find_nearby_drivers(db, Coordinates(lat, lng), radius)
    return NearbyDriversResponse(
        count=len(drivers),
        radius_km=radius,
        drivers=[NearbyDriver(**d) for d in drivers],
    )


@router.put(
    "/me/status",
    response_model=DriverStatusResponse,
    summary="Update my availability",
)
async def update_my_status(
    payload: DriverStatusUpdate,
    current_driver: CurrentDriver,
    db: DatabaseSession,
) -> DriverStatusResponse:
    """Toggle availability; a position given here becomes the driver's location."""
    location = Coordinates.from_optional(payload.lat, payload.lng)
    status_row = await DriverService.upsert_status(
        db, current_driver["id"], payload.available, location
    )
    return DriverStatusResponse.model_validate(status_row)


@router.get(
    "/me/status",
    response_model=DriverStatusResponse,
    summary="Get my availability",
)
async def get_my_status(
    current_driver: CurrentDriver,
    db: DatabaseSession,
) -> DriverStatusResponse:
    """
    Get the driver's stored status.

    Raises:
        NotFoundException: If the driver never set a status
    """
    status_row = await DriverService.get_status(db, current_driver["id"])
    if not status_row:
        raise NotFoundException("Driver status not set")
    return DriverStatusResponse.model_validate(status_row)


@router.get(
    "/me/notifications",
    response_model=NotificationListResponse,
    summary="List my ambulance notifications",
)
async def list_my_notifications(
    current_driver: CurrentDriver,
    db: DatabaseSession,
    status: Literal["pending", "accepted"] | None = Query(None, description="Filter by status"),
    limit: int = Query(50, ge=1, le=200),
) -> NotificationListResponse:
    """Driver inbox, newest first, with accept/reject availability per row."""
    result = await NotificationService.list_for_driver(
        db, current_driver["id"], status_filter=status, limit=limit
    )
    return NotificationListResponse(
        notifications=[
            AmbulanceNotificationRecord.model_validate(n) for n in result["notifications"]
        ],
        total=result["total"],
    )


@router.get(
    "/me/history",
    response_model=DriverHistoryResponse,
    summary="My accept/reject history",
)
async def list_my_history(
    current_driver: CurrentDriver,
    db: DatabaseSession,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    action: Literal["accepted", "rejected"] | None = Query(None, description="Filter by action"),
) -> DriverHistoryResponse:
    """Paged audit trail of the driver's decisions, newest first."""
    result = await NotificationService.list_history(
        db, current_driver["id"], page=page, page_size=page_size, action=action
    )
    return DriverHistoryResponse(
        history=[DriverHistoryRecord.model_validate(h) for h in result["history"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )
