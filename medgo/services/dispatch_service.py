"""Ambulance dispatch: driver selection and multi-channel fan-out."""

import asyncio
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import desc, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from medgo.config import settings
from medgo.core.exceptions import BadRequestException
from medgo.core.geo import Coordinates, directions_url
from medgo.core.realtime import ChangeFeed, change_feed
from medgo.models.ambulance_requests import ambulance_notifications, ambulance_requests
from medgo.models.sms_delivery_status import sms_delivery_status
from medgo.schemas.dispatch import DispatchRequest, DispatchResponse
from medgo.services.driver_service import DriverService
from medgo.services.email_service import EmailService, render_dispatch_email
from medgo.services.push_service import PushService
from medgo.services.sms_service import SmsService, normalize_phone
from medgo.services.user_service import UserService
from medgo.services.whatsapp_service import WhatsAppService

logger = structlog.get_logger(__name__)


def build_alert_text(alert: dict[str, Any]) -> str:
    """Assemble the SMS/WhatsApp alert body for a request."""
    location = alert.get("pickup_address") or (
        f"{alert['pickup_latitude']}, {alert['pickup_longitude']}"
    )
    lines = [
        "🚨 Emergency Alert from MedGo 🚨",
        f"Name: {alert.get('customer_name') or 'Unknown'}",
        f"Phone: {alert.get('customer_phone') or 'Not provided'}",
        f"Location: {location}",
        f"Type: {alert['emergency_type']}",
    ]
    if alert.get("description"):
        lines.append(f"Details: {alert['description']}")
    lines.append("This user requires an ambulance immediately. Please respond ASAP.")
    return "\n".join(lines)


class DispatchService:
    """
    Single entry point for ambulance dispatch.

    Target selection follows one policy per call ("radius" or "broadcast").
    The request row and one notification row per target are committed
    together; the side channels (email, SMS, push, operator WhatsApp) run
    afterwards, concurrently and best-effort. A failing channel is logged
    and reflected in the counts; it never rolls back the rows.
    """

    def __init__(
        self,
        sms_service: SmsService | None = None,
        email_service: EmailService | None = None,
        whatsapp_service: WhatsAppService | None = None,
        user_service: UserService | None = None,
        feed: ChangeFeed | None = None,
        policy: str | None = None,
        default_radius_km: float | None = None,
        sms_max_recipients: int | None = None,
    ):
        """Initialize with channel services; defaults come from settings."""
        self.sms = sms_service or SmsService()
        self.email = email_service or EmailService()
        self.whatsapp = whatsapp_service or WhatsAppService()
        self.users = user_service or UserService()
        self.feed = feed or change_feed
        self.policy = policy or settings.dispatch_policy
        self.default_radius_km = default_radius_km or settings.dispatch_radius_km
        self.sms_max_recipients = (
            settings.sms_max_recipients if sms_max_recipients is None else sms_max_recipients
        )

    def _resolve_radius(self, requested: float | None) -> float:
        radius = requested if requested is not None else self.default_radius_km
        if radius > settings.max_dispatch_radius_km:
            raise BadRequestException(
                f"radius_km must not exceed {settings.max_dispatch_radius_km}"
            )
        return radius

    async def select_targets(
        self,
        db: AsyncSession,
        origin: Coordinates,
        radius_km: float,
    ) -> tuple[int, list[dict]]:
        """
        Choose which drivers to notify.

        Returns:
            (number of available drivers checked, targets nearest first)
        """
        if self.policy == "broadcast":
            drivers = await DriverService.list_available_drivers(db, require_location=False)
            return len(drivers), DriverService.rank_by_distance(origin, drivers, None)

        drivers = await DriverService.list_available_drivers(db, require_location=True)
        return len(drivers), DriverService.rank_by_distance(origin, drivers, radius_km)

    async def dispatch(
        self,
        db: AsyncSession,
        customer: dict,
        payload: DispatchRequest,
    ) -> DispatchResponse:
        """
        Create an ambulance request and notify drivers.

        Args:
            db: Database session
            customer: Authenticated caller's user row
            payload: Validated dispatch request

        Returns:
            Aggregate counts for every channel
        """
        origin = Coordinates(payload.lat, payload.lng)
        radius_km = self._resolve_radius(payload.radius_km)
        emergency_number = settings.emergency_phone_number

        checked, targets = await self.select_targets(db, origin, radius_km)
        response_radius = radius_km if self.policy == "radius" else None

        log = logger.bind(
            customer_id=str(customer["id"]),
            emergency_type=payload.emergency_type,
            policy=self.policy,
        )

        if not targets:
            log.warning("dispatch_no_drivers", drivers_checked=checked, radius_km=response_radius)
            return DispatchResponse(
                request_id=None,
                success=False,
                message=(
                    "No available drivers found nearby. "
                    f"Please call {emergency_number} for emergency services."
                ),
                policy=self.policy,
                radius_km=response_radius,
                drivers_checked=checked,
                notified_count=0,
                emergency_number=emergency_number,
                emergency_call_uri=f"tel:{emergency_number}",
            )

        now = datetime.now(UTC)
        request_row = {
            "id": uuid4(),
            "customer_id": customer["id"],
            "customer_name": payload.customer_name or customer.get("full_name"),
            "customer_phone": payload.customer_phone or customer.get("phone"),
            "pickup_latitude": origin.latitude,
            "pickup_longitude": origin.longitude,
            "pickup_address": payload.pickup_address or None,
            "emergency_type": payload.emergency_type,
            "description": payload.description or None,
            "status": "pending",
            "dispatch_policy": self.policy,
            "radius_km": response_radius,
            "accepted_driver_id": None,
            "accepted_at": None,
            "created_at": now,
            "updated_at": now,
        }
        notification_rows = [
            {
                "id": uuid4(),
                "request_id": request_row["id"],
                "user_id": request_row["customer_id"],
                "driver_id": target["driver_id"],
                "pickup_latitude": origin.latitude,
                "pickup_longitude": origin.longitude,
                "pickup_address": request_row["pickup_address"],
                "emergency_type": request_row["emergency_type"],
                "description": request_row["description"],
                "customer_name": request_row["customer_name"],
                "customer_phone": request_row["customer_phone"],
                "distance_km": target["distance_km"],
                "status": "pending",
                "accepted_driver_id": None,
                "read_at": None,
                "delivered_at": None,
                "created_at": now,
                "updated_at": now,
            }
            for target in targets
        ]

        await db.execute(insert(ambulance_requests).values(**request_row))
        await db.execute(insert(ambulance_notifications), notification_rows)
        await db.commit()

        self.feed.publish_rows("ambulance_notifications", "INSERT", notification_rows)
        log = log.bind(request_id=str(request_row["id"]))
        log.info("dispatch_rows_created", notified_count=len(notification_rows))

        # Rows are committed; from here on failures only cost channels
        try:
            contacts = await self.users.get_contacts(db, [t["driver_id"] for t in targets])
        except Exception as e:
            await db.rollback()
            log.error("dispatch_contact_lookup_failed", error=str(e))
            contacts = {}

        alert = {
            **request_row,
            "directions_url": directions_url(origin),
        }

        results = await asyncio.gather(
            self._send_emails(alert, targets, contacts),
            self._send_sms(alert, targets, contacts),
            self._send_push(db, alert, targets),
            self._alert_operator(alert),
            return_exceptions=True,
        )
        channel_names = ("email", "sms", "push", "whatsapp")
        for name, outcome in zip(channel_names, results, strict=True):
            if isinstance(outcome, BaseException):
                log.error("dispatch_channel_failed", channel=name, error=str(outcome))

        emails_sent = results[0] if isinstance(results[0], int) else 0
        sms_rows = results[1] if isinstance(results[1], list) else []
        push_sent = results[2] if isinstance(results[2], int) else 0
        operator_alerted = results[3] is True

        sms_sent = await self._record_sms_results(db, sms_rows, log)

        log.info(
            "dispatch_completed",
            drivers_checked=checked,
            notified_count=len(notification_rows),
            emails_sent=emails_sent,
            sms_sent=sms_sent,
            push_sent=push_sent,
            operator_alerted=operator_alerted,
        )

        audience = "nearby" if self.policy == "radius" else "available"
        return DispatchResponse(
            request_id=request_row["id"],
            success=True,
            message=f"Emergency alert sent to {len(notification_rows)} {audience} drivers",
            policy=self.policy,
            radius_km=response_radius,
            drivers_checked=checked,
            notified_count=len(notification_rows),
            emails_sent=emails_sent,
            sms_sent=sms_sent,
            push_sent=push_sent,
            operator_alerted=operator_alerted,
            emergency_number=emergency_number,
            emergency_call_uri=f"tel:{emergency_number}",
        )

    async def _send_emails(
        self,
        alert: dict,
        targets: list[dict],
        contacts: dict[str, dict],
    ) -> int:
        if not self.email.is_configured:
            logger.warning("email_channel_skipped", reason="not_configured")
            return 0

        sends = []
        for target in targets:
            contact = contacts.get(str(target["driver_id"]))
            if not contact or not contact.get("email"):
                continue
            subject, html = render_dispatch_email({**alert, "distance_km": target["distance_km"]})
            sends.append(self.email.send(contact["email"], subject, html))

        outcomes = await asyncio.gather(*sends, return_exceptions=True)
        return sum(1 for outcome in outcomes if outcome is True)

    async def _send_sms(
        self,
        alert: dict,
        targets: list[dict],
        contacts: dict[str, dict],
    ) -> list[dict]:
        """Text the nearest drivers; returns sms_delivery_status rows to store."""
        if not self.sms.is_configured:
            logger.warning("sms_channel_skipped", reason="not_configured")
            return []

        message = build_alert_text(alert)
        rows: list[dict] = []
        pending: list[tuple[dict, Any]] = []

        for target in targets[: self.sms_max_recipients]:
            contact = contacts.get(str(target["driver_id"]))
            raw_phone = contact.get("phone") if contact else None
            if not raw_phone:
                logger.info("sms_no_phone", driver_id=str(target["driver_id"]))
                continue

            row = {
                "id": uuid4(),
                "request_id": alert["id"],
                "driver_id": target["driver_id"],
                "driver_phone": raw_phone,
                "delivery_status": "pending",
                "provider_response": None,
                "error_message": None,
                "delivered_at": None,
                "created_at": datetime.now(UTC),
            }
            rows.append(row)

            if normalize_phone(raw_phone) is None:
                row.update(delivery_status="failed", error_message="Invalid phone number format")
                continue
            pending.append((row, self.sms.send(raw_phone, message)))

        outcomes = await asyncio.gather(*(send for _, send in pending), return_exceptions=True)
        for (row, _), outcome in zip(pending, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                row.update(delivery_status="failed", error_message=str(outcome))
            elif outcome.success:
                row.update(
                    driver_phone=outcome.phone,
                    delivery_status="delivered",
                    provider_response=outcome.provider_response,
                    delivered_at=datetime.now(UTC),
                )
            else:
                row.update(
                    driver_phone=outcome.phone,
                    delivery_status="failed",
                    provider_response=outcome.provider_response,
                    error_message=outcome.error,
                )
        return rows

    async def _send_push(self, db: AsyncSession, alert: dict, targets: list[dict]) -> int:
        success, _ = await PushService.send_to_users(
            db,
            [t["driver_id"] for t in targets],
            title=f"🚨 Emergency: {alert['emergency_type']}",
            body=alert.get("pickup_address") or "New ambulance request near you",
            data={
                "type": "ambulance_request",
                "request_id": str(alert["id"]),
                "emergency_type": str(alert["emergency_type"]),
                "url": "/",
            },
        )
        return success

    async def _alert_operator(self, alert: dict) -> bool:
        if not self.whatsapp.is_configured:
            return False
        return await self.whatsapp.send(build_alert_text(alert))

    async def _record_sms_results(
        self,
        db: AsyncSession,
        rows: list[dict],
        log: Any,
    ) -> int:
        """Persist SMS outcomes; a storage failure does not fail the dispatch."""
        if not rows:
            return 0
        try:
            await db.execute(insert(sms_delivery_status), rows)
            await db.commit()
        except Exception as e:
            await db.rollback()
            log.error("sms_status_record_failed", error=str(e))
        else:
            self.feed.publish_rows("sms_delivery_status", "INSERT", rows)
        return sum(1 for row in rows if row["delivery_status"] == "delivered")

    @staticmethod
    async def list_customer_requests(
        db: AsyncSession,
        customer_id: UUID,
        page: int = 1,
        page_size: int = 20,
    ) -> dict[str, Any]:
        """Get a customer's requests, newest first."""
        query = select(ambulance_requests).where(ambulance_requests.c.customer_id == customer_id)

        total_result = await db.execute(select(func.count()).select_from(query.subquery()))
        total = total_result.scalar_one()

        result = await db.execute(
            query.order_by(desc(ambulance_requests.c.created_at))
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        return {
            "requests": [dict(row) for row in result.mappings().all()],
            "total": total,
            "page": page,
            "page_size": page_size,
        }

    @staticmethod
    async def get_request(db: AsyncSession, request_id: UUID) -> dict | None:
        """Get one request by ID."""
        result = await db.execute(
            select(ambulance_requests).where(ambulance_requests.c.id == request_id)
        )
        row = result.mappings().first()
        return dict(row) if row else None
