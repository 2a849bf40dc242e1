"""Realtime dashboard updates over WebSocket."""

import asyncio
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from medgo.core.realtime import ChangeFeed, Subscription, get_change_feed
from medgo.core.security import user_id_from_token
from medgo.database import get_session_factory
from medgo.schemas.realtime import ChangeEvent
from medgo.services.dispatch_service import DispatchService
from medgo.services.notification_service import annotate_for_driver
from medgo.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/realtime", tags=["Realtime"])

REQUEST_TABLES = ("ambulance_notifications", "sms_delivery_status")


class SubscriptionDenied(Exception):
    """The caller may not watch the requested stream."""


async def open_subscription(
    db: AsyncSession,
    feed: ChangeFeed,
    user: dict,
    request_id: UUID | None = None,
) -> Subscription:
    """
    Subscribe a user to the changes relevant to them.

    Drivers follow their own notification rows. Customers follow one of
    their requests (notifications and SMS outcomes) or, without a request,
    the notifications created for them. Admins may follow any request.

    Raises:
        SubscriptionDenied: If the request is unknown or not the caller's
    """
    role = user.get("role")

    if role == "driver":
        filters: dict[str, Any] = {"driver_id": user["id"]}
        if request_id is not None:
            filters["request_id"] = request_id
        return feed.subscribe(["ambulance_notifications"], **filters)

    if request_id is None:
        if role == "admin":
            return feed.subscribe(REQUEST_TABLES)
        return feed.subscribe(["ambulance_notifications"], user_id=user["id"])

    request = await DispatchService.get_request(db, request_id)
    if request is None or (role != "admin" and request["customer_id"] != user["id"]):
        raise SubscriptionDenied("Request not found")
    return feed.subscribe(REQUEST_TABLES, request_id=request_id)


def render_event(event: ChangeEvent, user: dict) -> dict[str, Any]:
    """Serialize an event for one recipient, adding driver dashboard flags."""
    if (
        user.get("role") == "driver"
        and event.table == "ambulance_notifications"
        and event.event_type != "DELETE"
    ):
        event = event.model_copy(update={"record": annotate_for_driver(event.record, user["id"])})
    return jsonable_encoder(event)


async def _pump(websocket: WebSocket, subscription: Subscription, user: dict) -> None:
    while True:
        event = await subscription.get()
        await websocket.send_json(render_event(event, user))


async def _drain(websocket: WebSocket) -> None:
    # Client messages carry no commands; reading only detects disconnects
    while True:
        await websocket.receive_text()


@router.websocket("/ws")
async def realtime_ws(
    websocket: WebSocket,
    token: str = Query(..., description="Bearer access token"),
    request_id: UUID | None = Query(None, description="Request to follow"),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    feed: ChangeFeed = Depends(get_change_feed),
) -> None:
    """
    Stream committed changes to a dashboard.

    Each message is a change event: ``{table, event_type, record,
    old_record, committed_at}``. Events for one connection arrive in
    publish order; clients deduplicate by row id.

    The database is only touched while authorizing the subscription; the
    session is closed before the stream starts so open sockets never hold
    pooled connections.
    """
    user_id = user_id_from_token(token)
    subscription: Subscription | None = None
    async with sessions() as db:
        user = await UserService.get_user_by_id(db, user_id) if user_id else None
        if user and user["is_active"]:
            try:
                subscription = await open_subscription(db, feed, user, request_id)
            except SubscriptionDenied:
                logger.info(
                    "realtime_subscription_denied",
                    user_id=str(user["id"]),
                    request_id=str(request_id),
                )

    if subscription is None or user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    log = logger.bind(user_id=str(user["id"]), role=user["role"], request_id=str(request_id))
    log.info("realtime_connected")

    pump = asyncio.create_task(_pump(websocket, subscription, user))
    drain = asyncio.create_task(_drain(websocket))
    try:
        done, _ = await asyncio.wait({pump, drain}, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                log.error("realtime_stream_failed", error=str(error))
    finally:
        pump.cancel()
        drain.cancel()
        subscription.close()
        log.info("realtime_disconnected", dropped=subscription.dropped)
