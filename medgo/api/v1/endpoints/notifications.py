"""Driver actions on ambulance notifications."""

from uuid import UUID

from fastapi import APIRouter, status

from medgo.dependencies import CurrentDriver, DatabaseSession, NotificationServiceDep
from medgo.schemas.notifications import (
    AcceptResponse,
    AmbulanceNotificationRecord,
    RejectResponse,
)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.post(
    "/{notification_id}/accept",
    response_model=AcceptResponse,
    status_code=status.HTTP_200_OK,
    summary="Accept an ambulance request",
)
async def accept_notification(
    notification_id: UUID,
    current_driver: CurrentDriver,
    db: DatabaseSession,
    service: NotificationServiceDep,
) -> AcceptResponse:
    """
    Accept the request behind one of the driver's notifications.

    Only the first driver to accept wins; every other driver's copy of the
    request flips to accepted at the same time.

    Raises:
        NotFoundException: If the notification is not this driver's
        AlreadyAcceptedException: If another driver accepted first (409)
    """
    result = await service.accept(db, current_driver["id"], notification_id)
    return AcceptResponse(**result)


@router.post(
    "/{notification_id}/reject",
    response_model=RejectResponse,
    status_code=status.HTTP_200_OK,
    summary="Reject an ambulance request",
)
async def reject_notification(
    notification_id: UUID,
    current_driver: CurrentDriver,
    db: DatabaseSession,
    service: NotificationServiceDep,
) -> RejectResponse:
    """
    Remove the request from this driver's inbox.

    Other drivers keep their notifications.
    """
    result = await service.reject(db, current_driver["id"], notification_id)
    return RejectResponse(**result)


@router.patch(
    "/{notification_id}/delivered",
    response_model=AmbulanceNotificationRecord,
    summary="Mark notification as delivered",
)
async def mark_notification_delivered(
    notification_id: UUID,
    current_driver: CurrentDriver,
    db: DatabaseSession,
    service: NotificationServiceDep,
) -> AmbulanceNotificationRecord:
    """Record that the notification reached the driver's device."""
    result = await service.mark_delivered(db, current_driver["id"], notification_id)
    return AmbulanceNotificationRecord.model_validate(result)


@router.patch(
    "/{notification_id}/read",
    response_model=AmbulanceNotificationRecord,
    summary="Mark notification as read",
)
async def mark_notification_read(
    notification_id: UUID,
    current_driver: CurrentDriver,
    db: DatabaseSession,
    service: NotificationServiceDep,
) -> AmbulanceNotificationRecord:
    """Record that the driver opened the notification."""
    result = await service.mark_read(db, current_driver["id"], notification_id)
    return AmbulanceNotificationRecord.model_validate(result)
