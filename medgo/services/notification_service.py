"""Driver-side notification handling: listing, receipts and accept/reject."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import delete, desc, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from medgo.core.exceptions import AlreadyAcceptedException, NotFoundException
from medgo.core.geo import Coordinates, directions_url
from medgo.core.realtime import ChangeFeed, change_feed
from medgo.models.ambulance_requests import ambulance_notifications, ambulance_requests
from medgo.models.driver_request_history import driver_request_history

logger = structlog.get_logger(__name__)


def annotate_for_driver(notification: dict, driver_id: UUID | str) -> dict:
    """
    Add the dashboard flags a driver needs for one notification.

    ``accepted_by_other`` is set when the request was accepted by someone
    else; accept/reject controls are only enabled while the row is pending.
    """
    accepted_by = notification.get("accepted_driver_id")
    accepted = notification.get("status") == "accepted"
    return {
        **notification,
        "accepted_by_other": accepted and str(accepted_by) != str(driver_id),
        "actions_enabled": not accepted,
    }


def already_accepted(notification: dict, driver_id: UUID) -> AlreadyAcceptedException:
    """Conflict for acting on an accepted row, worded for the winner or a loser."""
    if str(notification.get("accepted_driver_id")) == str(driver_id):
        return AlreadyAcceptedException("You have already accepted this request")
    return AlreadyAcceptedException()


class NotificationService:
    """Service for ambulance notifications addressed to drivers."""

    def __init__(self, feed: ChangeFeed | None = None):
        """Initialize with the change feed used to announce committed changes."""
        self.feed = feed or change_feed

    @staticmethod
    async def _get_own_notification(
        db: AsyncSession,
        notification_id: UUID,
        driver_id: UUID,
    ) -> dict:
        result = await db.execute(
            select(ambulance_notifications).where(
                ambulance_notifications.c.id == notification_id,
                ambulance_notifications.c.driver_id == driver_id,
            )
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Notification not found")
        return dict(row)

    @staticmethod
    async def list_for_driver(
        db: AsyncSession,
        driver_id: UUID,
        status_filter: str | None = None,
        limit: int = 50,
    ) -> dict[str, Any]:
        """
        Get a driver's notifications, newest first.

        Returns:
            Dictionary with annotated notifications and total count
        """
        query = select(ambulance_notifications).where(
            ambulance_notifications.c.driver_id == driver_id
        )
        if status_filter:
            query = query.where(ambulance_notifications.c.status == status_filter)

        total_result = await db.execute(select(func.count()).select_from(query.subquery()))
        total = total_result.scalar_one()

        result = await db.execute(
            query.order_by(desc(ambulance_notifications.c.created_at)).limit(limit)
        )
        rows = [annotate_for_driver(dict(row), driver_id) for row in result.mappings().all()]
        return {"notifications": rows, "total": total}

    async def accept(
        self,
        db: AsyncSession,
        driver_id: UUID,
        notification_id: UUID,
    ) -> dict[str, Any]:
        """
        Accept a request on behalf of a driver.

        The request row is claimed with a conditional update
        (``status = 'pending'`` in the WHERE clause) and all sibling
        notifications are marked accepted in the same transaction. Exactly
        one concurrent caller can see an affected row; everyone else gets
        AlreadyAcceptedException and no history entry.

        Args:
            db: Database session
            driver_id: Accepting driver
            notification_id: The driver's own notification row

        Returns:
            Accept details including a driving-directions link

        Raises:
            NotFoundException: If the notification is not this driver's
            AlreadyAcceptedException: If the request was already accepted
        """
        notification = await self._get_own_notification(db, notification_id, driver_id)
        request_id = notification["request_id"]
        log = logger.bind(
            driver_id=str(driver_id),
            request_id=str(request_id),
            notification_id=str(notification_id),
        )

        if notification["status"] == "accepted":
            log.info("accept_after_acceptance", stage="precheck")
            raise already_accepted(notification, driver_id)

        now = datetime.now(UTC)
        try:
            claim = await db.execute(
                update(ambulance_requests)
                .where(
                    ambulance_requests.c.id == request_id,
                    ambulance_requests.c.status == "pending",
                )
                .values(
                    status="accepted",
                    accepted_driver_id=driver_id,
                    accepted_at=now,
                    updated_at=now,
                )
            )
            if claim.rowcount != 1:
                await db.rollback()
                log.info("accept_lost_race", stage="claim")
                raise AlreadyAcceptedException()

            siblings = await db.execute(
                update(ambulance_notifications)
                .where(ambulance_notifications.c.request_id == request_id)
                .values(status="accepted", accepted_driver_id=driver_id, updated_at=now)
            )
            await db.execute(
                insert(driver_request_history).values(
                    id=uuid4(),
                    driver_id=driver_id,
                    request_id=request_id,
                    customer_name=notification["customer_name"],
                    customer_phone=notification["customer_phone"],
                    emergency_type=notification["emergency_type"],
                    pickup_address=notification["pickup_address"],
                    action="accepted",
                    created_at=now,
                )
            )
            await db.commit()
        except AlreadyAcceptedException:
            raise
        except Exception:
            await db.rollback()
            raise

        sibling_count = siblings.rowcount
        log.info("request_accepted", siblings_updated=sibling_count)

        await self._publish_group_update(db, request_id)

        pickup = Coordinates(notification["pickup_latitude"], notification["pickup_longitude"])
        return {
            "request_id": request_id,
            "notification_id": notification_id,
            "status": "accepted",
            "siblings_updated": sibling_count,
            "directions_url": directions_url(pickup),
            "customer_name": notification["customer_name"],
            "customer_phone": notification["customer_phone"],
            "pickup_address": notification["pickup_address"],
        }

    async def reject(
        self,
        db: AsyncSession,
        driver_id: UUID,
        notification_id: UUID,
    ) -> dict[str, Any]:
        """
        Reject a request for this driver only.

        Deletes the driver's own pending row and records the decision;
        sibling rows and the request itself are left untouched.

        Raises:
            NotFoundException: If the notification is not this driver's
            AlreadyAcceptedException: If the request was already accepted
        """
        notification = await self._get_own_notification(db, notification_id, driver_id)
        if notification["status"] == "accepted":
            raise already_accepted(notification, driver_id)

        now = datetime.now(UTC)
        try:
            removed = await db.execute(
                delete(ambulance_notifications).where(
                    ambulance_notifications.c.id == notification_id,
                    ambulance_notifications.c.driver_id == driver_id,
                    ambulance_notifications.c.status == "pending",
                )
            )
            if removed.rowcount != 1:
                # Accepted between the read and the delete
                await db.rollback()
                raise AlreadyAcceptedException()

            await db.execute(
                insert(driver_request_history).values(
                    id=uuid4(),
                    driver_id=driver_id,
                    request_id=notification["request_id"],
                    customer_name=notification["customer_name"],
                    customer_phone=notification["customer_phone"],
                    emergency_type=notification["emergency_type"],
                    pickup_address=notification["pickup_address"],
                    action="rejected",
                    created_at=now,
                )
            )
            await db.commit()
        except AlreadyAcceptedException:
            raise
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "request_rejected",
            driver_id=str(driver_id),
            request_id=str(notification["request_id"]),
            notification_id=str(notification_id),
        )
        self.feed.publish_rows(
            "ambulance_notifications",
            "DELETE",
            [{"id": notification_id}],
            [notification],
        )

        return {
            "request_id": notification["request_id"],
            "notification_id": notification_id,
            "status": "rejected",
        }

    async def mark_delivered(
        self,
        db: AsyncSession,
        driver_id: UUID,
        notification_id: UUID,
    ) -> dict:
        """Record that the notification reached the driver's device (idempotent)."""
        return await self._set_receipt(db, driver_id, notification_id, read=False)

    async def mark_read(
        self,
        db: AsyncSession,
        driver_id: UUID,
        notification_id: UUID,
    ) -> dict:
        """Record that the driver opened the notification; implies delivered."""
        return await self._set_receipt(db, driver_id, notification_id, read=True)

    async def _set_receipt(
        self,
        db: AsyncSession,
        driver_id: UUID,
        notification_id: UUID,
        read: bool,
    ) -> dict:
        old = await self._get_own_notification(db, notification_id, driver_id)
        now = datetime.now(UTC)

        values: dict[str, Any] = {}
        if old["delivered_at"] is None:
            values["delivered_at"] = now
        if read and old["read_at"] is None:
            values["read_at"] = now
        if not values:
            return annotate_for_driver(old, driver_id)

        values["updated_at"] = now
        await db.execute(
            update(ambulance_notifications)
            .where(ambulance_notifications.c.id == notification_id)
            .values(**values)
        )
        await db.commit()

        new = await self._get_own_notification(db, notification_id, driver_id)
        self.feed.publish_rows("ambulance_notifications", "UPDATE", [new], [old])
        return annotate_for_driver(new, driver_id)

    async def _publish_group_update(self, db: AsyncSession, request_id: UUID) -> None:
        result = await db.execute(
            select(ambulance_notifications).where(
                ambulance_notifications.c.request_id == request_id
            )
        )
        rows = [dict(row) for row in result.mappings().all()]
        self.feed.publish_rows("ambulance_notifications", "UPDATE", rows)

    @staticmethod
    async def list_history(
        db: AsyncSession,
        driver_id: UUID,
        page: int = 1,
        page_size: int = 50,
        action: str | None = None,
    ) -> dict[str, Any]:
        """Get a driver's decision history, newest first."""
        query = select(driver_request_history).where(
            driver_request_history.c.driver_id == driver_id
        )
        if action:
            query = query.where(driver_request_history.c.action == action)

        total_result = await db.execute(select(func.count()).select_from(query.subquery()))
        total = total_result.scalar_one()

        result = await db.execute(
            query.order_by(desc(driver_request_history.c.created_at))
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        return {
            "history": [dict(row) for row in result.mappings().all()],
            "total": total,
            "page": page,
            "page_size": page_size,
        }
