"""Tests for ambulance dispatch and channel fan-out."""

import json
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs

import httpx
import pytest
from conftest import DISPATCH_BODY, PICKUP, headers_for
from httpx import AsyncClient
from sqlalchemy import func, insert, select

from medgo.core.geo import Coordinates
from medgo.dependencies import get_dispatch_service
from medgo.main import app
from medgo.models.ambulance_requests import ambulance_notifications, ambulance_requests
from medgo.models.push_tokens import push_tokens
from medgo.models.sms_delivery_status import sms_delivery_status
from medgo.schemas.dispatch import DispatchRequest
from medgo.services.dispatch_service import DispatchService, build_alert_text
from medgo.services.driver_service import DriverService
from medgo.services.email_service import EmailService
from medgo.services.sms_service import SmsService
from medgo.services.whatsapp_service import WhatsAppService


class RecordingTransport:
    """Collects outbound requests and answers with a fixed response."""

    def __init__(self, status_code: int = 200, body: dict | None = None, error: bool = False):
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.body = body if body is not None else {}
        self.error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def make_service(
    feed,
    policy: str = "radius",
    sms: RecordingTransport | None = None,
    email: RecordingTransport | None = None,
    whatsapp: RecordingTransport | None = None,
    sms_max_recipients: int = 3,
) -> DispatchService:
    """Dispatch service whose channels talk to mock transports."""
    return DispatchService(
        sms_service=SmsService(api_key="sms-key" if sms else "", transport=sms and sms.transport),
        email_service=EmailService(
            api_key="email-key" if email else "", transport=email and email.transport
        ),
        whatsapp_service=WhatsAppService(
            api_key="wa-key" if whatsapp else "",
            phone="919800000000" if whatsapp else "",
            transport=whatsapp and whatsapp.transport,
        ),
        feed=feed,
        policy=policy,
        default_radius_km=5.0,
        sms_max_recipients=sms_max_recipients,
    )


async def count_rows(db_session, table) -> int:
    result = await db_session.execute(select(func.count()).select_from(table))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_dispatch_radius_policy_notifies_drivers_in_range(
    client: AsyncClient,
    auth_headers,
    driver_near,
    driver_far,
    db_session,
    feed,
) -> None:
    """Only the driver within 5 km is notified under the radius policy."""
    subscription = feed.subscribe(["ambulance_notifications"], driver_id=driver_near["id"])

    response = await client.post("/api/v1/dispatch", json=DISPATCH_BODY, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["policy"] == "radius"
    assert data["drivers_checked"] == 2
    assert data["notified_count"] == 1
    assert data["message"] == "Emergency alert sent to 1 nearby drivers"
    assert data["request_id"] is not None

    result = await db_session.execute(select(ambulance_notifications))
    rows = result.mappings().all()
    assert len(rows) == 1
    assert rows[0]["driver_id"] == driver_near["id"]
    assert rows[0]["status"] == "pending"
    assert str(rows[0]["request_id"]) == data["request_id"]
    assert rows[0]["distance_km"] == pytest.approx(1.2, abs=0.05)

    event = subscription.get_nowait()
    assert event.event_type == "INSERT"
    assert event.record["id"] == rows[0]["id"]


@pytest.mark.asyncio
async def test_dispatch_broadcast_policy_notifies_every_available_driver(
    client: AsyncClient,
    auth_headers,
    driver_near,
    driver_far,
    db_session,
    feed,
) -> None:
    """Broadcast ignores the radius."""
    app.dependency_overrides[get_dispatch_service] = lambda: make_service(feed, "broadcast")

    response = await client.post("/api/v1/dispatch", json=DISPATCH_BODY, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["policy"] == "broadcast"
    assert data["radius_km"] is None
    assert data["notified_count"] == 2
    assert data["message"] == "Emergency alert sent to 2 available drivers"
    assert await count_rows(db_session, ambulance_notifications) == 2


@pytest.mark.asyncio
async def test_dispatch_without_drivers_advises_emergency_number(
    client: AsyncClient,
    auth_headers,
    db_session,
) -> None:
    """No target means no rows and a pointer to 108."""
    response = await client.post("/api/v1/dispatch", json=DISPATCH_BODY, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["notified_count"] == 0
    assert data["request_id"] is None
    assert "108" in data["message"]
    assert data["emergency_call_uri"] == "tel:108"
    assert await count_rows(db_session, ambulance_requests) == 0


@pytest.mark.asyncio
async def test_dispatch_is_rate_limited(client: AsyncClient, auth_headers, mock_redis) -> None:
    """The per-user counter in Redis caps dispatch calls."""
    mock_redis.get.return_value = "5"

    response = await client.post("/api/v1/dispatch", json=DISPATCH_BODY, headers=auth_headers)

    assert response.status_code == 429
    assert response.json()["error"] == "RateLimitException"


@pytest.mark.asyncio
async def test_dispatch_rate_limit_fails_open(
    client: AsyncClient, auth_headers, mock_redis
) -> None:
    """An unreachable Redis never blocks an emergency call."""
    mock_redis.get.side_effect = ConnectionError("redis down")

    response = await client.post("/api/v1/dispatch", json=DISPATCH_BODY, headers=auth_headers)

    assert response.status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "override",
    [{"emergency_type": "   "}, {"lat": 95.0}, {"lng": -200.0}, {"radius_km": 0}],
)
async def test_dispatch_validation_errors_are_400(
    client: AsyncClient, auth_headers, override
) -> None:
    """Malformed requests are rejected before any work."""
    response = await client.post(
        "/api/v1/dispatch", json={**DISPATCH_BODY, **override}, headers=auth_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_dispatch_radius_above_max_is_400(client: AsyncClient, auth_headers) -> None:
    """Requested radius cannot exceed the configured maximum."""
    response = await client.post(
        "/api/v1/dispatch", json={**DISPATCH_BODY, "radius_km": 80}, headers=auth_headers
    )
    assert response.status_code == 400
    assert "radius_km" in response.json()["message"]


@pytest.mark.asyncio
async def test_drivers_cannot_dispatch(client: AsyncClient, driver_near) -> None:
    """Dispatch is a customer action."""
    response = await client.post(
        "/api/v1/dispatch", json=DISPATCH_BODY, headers=headers_for(driver_near)
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_dispatch_requires_auth(client: AsyncClient) -> None:
    """Anonymous callers are rejected."""
    response = await client.post("/api/v1/dispatch", json=DISPATCH_BODY)
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_channels_are_best_effort(
    db_session, customer, driver_near, driver_far, feed
) -> None:
    """Failing email and WhatsApp do not affect SMS or the stored rows."""
    sms = RecordingTransport(body={"return": True, "request_id": "f2s-1", "message": ["ok"]})
    email = RecordingTransport(status_code=500, body={"message": "internal"})
    whatsapp = RecordingTransport(error=True)
    service = make_service(feed, sms=sms, email=email, whatsapp=whatsapp)

    result = await service.dispatch(db_session, customer, DispatchRequest(**DISPATCH_BODY))

    assert result.success is True
    assert result.notified_count == 1
    assert result.sms_sent == 1
    assert result.emails_sent == 0
    assert result.operator_alerted is False
    assert len(email.requests) == 1
    assert len(whatsapp.requests) == 1

    form = parse_qs(sms.requests[0].content.decode())
    assert form["numbers"] == ["9876500001"]
    assert form["route"] == ["v3"]
    assert form["authorization"] == ["sms-key"]
    assert "Type: Cardiac" in form["message"][0]

    rows = (await db_session.execute(select(sms_delivery_status))).mappings().all()
    assert len(rows) == 1
    assert rows[0]["delivery_status"] == "delivered"
    assert rows[0]["driver_id"] == driver_near["id"]
    assert await count_rows(db_session, ambulance_notifications) == 1


@pytest.mark.asyncio
async def test_contact_lookup_failure_keeps_dispatch(
    db_session, customer, driver_near, feed
) -> None:
    """Committed rows stand even when driver contacts cannot be loaded."""
    sms = RecordingTransport(body={"return": True})
    service = make_service(feed, sms=sms)

    with patch.object(
        service.users, "get_contacts", side_effect=ConnectionError("cache and db down")
    ):
        result = await service.dispatch(db_session, customer, DispatchRequest(**DISPATCH_BODY))

    assert result.success is True
    assert result.notified_count == 1
    assert result.sms_sent == 0
    assert sms.requests == []
    assert await count_rows(db_session, ambulance_requests) == 1
    assert await count_rows(db_session, ambulance_notifications) == 1


@pytest.mark.asyncio
async def test_email_and_operator_alert_payloads(db_session, customer, driver_near, feed) -> None:
    """Resend gets JSON with the driver's address; CallMeBot gets query params."""
    email = RecordingTransport(body={"id": "email-1"})
    whatsapp = RecordingTransport()
    service = make_service(feed, email=email, whatsapp=whatsapp)

    result = await service.dispatch(db_session, customer, DispatchRequest(**DISPATCH_BODY))

    assert result.emails_sent == 1
    assert result.operator_alerted is True

    sent = json.loads(email.requests[0].content)
    assert sent["to"] == [driver_near["email"]]
    assert "Cardiac" in sent["subject"]
    assert "google.com/maps/dir" in sent["html"]
    assert email.requests[0].headers["Authorization"] == "Bearer email-key"

    params = whatsapp.requests[0].url.params
    assert params["phone"] == "919800000000"
    assert params["apikey"] == "wa-key"
    assert "Emergency Alert from MedGo" in params["text"]


@pytest.mark.asyncio
async def test_malformed_driver_phone_recorded_as_failed(
    db_session, customer, make_user, feed
) -> None:
    """A bad number is stored as failed and never sent to the gateway."""
    driver = await make_user("driver", phone="12-345")
    await DriverService.upsert_status(db_session, driver["id"], True, Coordinates(28.62, 77.21))
    sms = RecordingTransport(body={"return": True})
    service = make_service(feed, sms=sms)

    result = await service.dispatch(db_session, customer, DispatchRequest(**DISPATCH_BODY))

    assert result.sms_sent == 0
    assert sms.requests == []
    rows = (await db_session.execute(select(sms_delivery_status))).mappings().all()
    assert len(rows) == 1
    assert rows[0]["delivery_status"] == "failed"
    assert rows[0]["error_message"] == "Invalid phone number format"


@pytest.mark.asyncio
async def test_provider_rejection_recorded_as_failed(
    db_session, customer, driver_near, feed
) -> None:
    """Fast2SMS answering return=false is a failed delivery."""
    sms = RecordingTransport(body={"return": False, "message": "Invalid Authentication"})
    service = make_service(feed, sms=sms)

    result = await service.dispatch(db_session, customer, DispatchRequest(**DISPATCH_BODY))

    assert result.sms_sent == 0
    rows = (await db_session.execute(select(sms_delivery_status))).mappings().all()
    assert rows[0]["delivery_status"] == "failed"
    assert rows[0]["error_message"] == "Invalid Authentication"


@pytest.mark.asyncio
async def test_sms_goes_to_nearest_drivers_only(db_session, customer, make_user, feed) -> None:
    """SMS fan-out is capped to the closest drivers."""
    drivers = []
    for i, km in enumerate((3.0, 1.0, 2.0)):
        driver = await make_user("driver", phone=f"98765000{i + 10}")
        position = Coordinates(PICKUP.latitude + km / 111.19, PICKUP.longitude)
        await DriverService.upsert_status(db_session, driver["id"], True, position)
        drivers.append(driver)
    sms = RecordingTransport(body={"return": True})
    service = make_service(feed, sms=sms, sms_max_recipients=2)

    result = await service.dispatch(db_session, customer, DispatchRequest(**DISPATCH_BODY))

    assert result.notified_count == 3
    assert result.sms_sent == 2
    numbers = sorted(parse_qs(r.content.decode())["numbers"][0] for r in sms.requests)
    assert numbers == ["9876500011", "9876500012"]


@pytest.mark.asyncio
async def test_push_uses_registered_tokens(db_session, customer, driver_near, feed) -> None:
    """Drivers with an active FCM token get a push."""
    await db_session.execute(
        insert(push_tokens).values(
            user_id=driver_near["id"], fcm_token="token-near", platform="android", is_active=True
        )
    )
    await db_session.commit()
    service = make_service(feed)

    with (
        patch("medgo.services.push_service.is_firebase_initialized", return_value=True),
        patch(
            "medgo.services.push_service.messaging.send_each_for_multicast",
            return_value=MagicMock(success_count=1, failure_count=0),
        ) as mock_send,
    ):
        result = await service.dispatch(db_session, customer, DispatchRequest(**DISPATCH_BODY))

    assert result.push_sent == 1
    message = mock_send.call_args[0][0]
    assert message.tokens == ["token-near"]
    assert message.data["request_id"] == str(result.request_id)


@pytest.mark.asyncio
async def test_push_skipped_without_firebase(db_session, customer, driver_near, feed) -> None:
    """Without Firebase credentials push is only logged."""
    await db_session.execute(
        insert(push_tokens).values(
            user_id=driver_near["id"], fcm_token="token-near", platform="web", is_active=True
        )
    )
    await db_session.commit()

    with patch("medgo.services.push_service.messaging.send_each_for_multicast") as mock_send:
        result = await make_service(feed).dispatch(
            db_session, customer, DispatchRequest(**DISPATCH_BODY)
        )

    assert result.push_sent == 0
    mock_send.assert_not_called()


def test_alert_text_falls_back_to_coordinates() -> None:
    """Without an address the SMS shows the raw position."""
    text = build_alert_text(
        {
            "customer_name": None,
            "customer_phone": None,
            "pickup_address": None,
            "pickup_latitude": 28.6139,
            "pickup_longitude": 77.209,
            "emergency_type": "Accident",
            "description": None,
        }
    )
    assert "Location: 28.6139, 77.209" in text
    assert "Name: Unknown" in text
    assert "Details" not in text


@pytest.mark.asyncio
async def test_list_and_get_my_requests(
    client: AsyncClient, auth_headers, driver_near, make_user
) -> None:
    """Customers page through their own requests only."""
    created = await client.post("/api/v1/dispatch", json=DISPATCH_BODY, headers=auth_headers)
    request_id = created.json()["request_id"]

    response = await client.get("/api/v1/dispatch/requests", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["requests"][0]["id"] == request_id
    assert data["requests"][0]["status"] == "pending"
    assert data["requests"][0]["customer_name"] == "Asha Verma"

    response = await client.get(f"/api/v1/dispatch/requests/{request_id}", headers=auth_headers)
    assert response.status_code == 200

    stranger = await make_user("customer")
    response = await client.get(
        f"/api/v1/dispatch/requests/{request_id}", headers=headers_for(stranger)
    )
    assert response.status_code == 403
