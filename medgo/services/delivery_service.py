"""Per-request delivery view across SMS and in-app channels."""

from collections import Counter
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medgo.core.exceptions import ForbiddenException, NotFoundException
from medgo.models.ambulance_requests import ambulance_notifications, ambulance_requests
from medgo.models.sms_delivery_status import sms_delivery_status
from medgo.models.users import users

DEFAULT_DRIVER_NAME = "Driver"


def in_app_status(notification: dict) -> str:
    """Collapse read/delivered timestamps into one status label."""
    if notification.get("read_at") is not None:
        return "read"
    if notification.get("delivered_at") is not None:
        return "delivered"
    return "pending"


class DeliveryService:
    """Service for delivery tracking reads."""

    @staticmethod
    async def get_delivery_status(
        db: AsyncSession,
        request_id: UUID,
        requester: dict,
    ) -> dict[str, Any]:
        """
        Build the delivery view of one request.

        Only the requesting customer and admins may see it.

        Args:
            db: Database session
            request_id: Ambulance request ID
            requester: Authenticated user row

        Returns:
            Request status, one item per SMS attempt and per in-app
            notification, and counts by status

        Raises:
            NotFoundException: If the request does not exist
            ForbiddenException: If the requester neither owns it nor is admin
        """
        result = await db.execute(
            select(ambulance_requests).where(ambulance_requests.c.id == request_id)
        )
        request = result.mappings().first()
        if not request:
            raise NotFoundException("Request not found")

        if requester.get("role") != "admin" and request["customer_id"] != requester["id"]:
            raise ForbiddenException("Not allowed to view this request")

        sms_result = await db.execute(
            select(sms_delivery_status)
            .where(sms_delivery_status.c.request_id == request_id)
            .order_by(sms_delivery_status.c.created_at)
        )
        sms_rows = [dict(row) for row in sms_result.mappings().all()]

        notif_result = await db.execute(
            select(ambulance_notifications)
            .where(ambulance_notifications.c.request_id == request_id)
            .order_by(ambulance_notifications.c.created_at)
        )
        notif_rows = [dict(row) for row in notif_result.mappings().all()]

        driver_ids = {row["driver_id"] for row in sms_rows + notif_rows if row["driver_id"]}
        names: dict[UUID, str] = {}
        if driver_ids:
            name_result = await db.execute(
                select(users.c.id, users.c.full_name).where(users.c.id.in_(driver_ids))
            )
            names = {row.id: row.full_name for row in name_result.all() if row.full_name}

        accepted_driver_id = request["accepted_driver_id"]
        items: list[dict[str, Any]] = []

        for row in sms_rows:
            items.append(
                {
                    "id": row["id"],
                    "channel": "sms",
                    "driver_id": row["driver_id"],
                    "driver_name": names.get(row["driver_id"], DEFAULT_DRIVER_NAME),
                    "status": row["delivery_status"],
                    "accepted": accepted_driver_id is not None
                    and row["driver_id"] == accepted_driver_id,
                    "phone": row["driver_phone"],
                    "error_message": row["error_message"],
                    "delivered_at": row["delivered_at"],
                }
            )

        for row in notif_rows:
            items.append(
                {
                    "id": row["id"],
                    "channel": "in_app",
                    "driver_id": row["driver_id"],
                    "driver_name": names.get(row["driver_id"], DEFAULT_DRIVER_NAME),
                    "status": in_app_status(row),
                    "accepted": accepted_driver_id is not None
                    and row["driver_id"] == accepted_driver_id,
                    "delivered_at": row["delivered_at"],
                    "read_at": row["read_at"],
                }
            )

        counts = Counter(item["status"] for item in items)
        return {
            "request_id": request["id"],
            "request_status": request["status"],
            "accepted_driver_id": accepted_driver_id,
            "items": items,
            "counts": {
                "total": len(items),
                "pending": counts["pending"],
                "delivered": counts["delivered"],
                "failed": counts["failed"],
                "read": counts["read"],
            },
        }
