"""Tests for driver status and nearby search."""

from uuid import uuid4

import pytest
from conftest import FAR_DRIVER_POS, NEAR_DRIVER_POS, PICKUP, headers_for
from httpx import AsyncClient
from sqlalchemy import func, select

from medgo.core.exceptions import BadRequestException
from medgo.core.geo import Coordinates
from medgo.models.driver_status import driver_status
from medgo.services.driver_service import DriverService


@pytest.mark.asyncio
async def test_upsert_status_keeps_one_row(db_session, make_user) -> None:
    """Repeated toggles update the same row."""
    driver = await make_user("driver")

    await DriverService.upsert_status(db_session, driver["id"], True, Coordinates(12.97, 77.59))
    await DriverService.upsert_status(db_session, driver["id"], False)
    status = await DriverService.upsert_status(db_session, driver["id"], True)

    count = await db_session.execute(
        select(func.count()).select_from(driver_status).where(
            driver_status.c.user_id == driver["id"]
        )
    )
    assert count.scalar_one() == 1
    assert status["available"] is True
    # A toggle without a position keeps the last known location
    assert status["latitude"] == pytest.approx(12.97)
    assert status["longitude"] == pytest.approx(77.59)


@pytest.mark.asyncio
async def test_find_nearby_filters_and_sorts(db_session, make_user) -> None:
    """Only drivers within the radius are returned, nearest first."""
    near = await make_user("driver")
    far = await make_user("driver")
    mid = await make_user("driver")
    offline = await make_user("driver")
    no_location = await make_user("driver")

    await DriverService.upsert_status(db_session, far["id"], True, FAR_DRIVER_POS)
    await DriverService.upsert_status(db_session, near["id"], True, NEAR_DRIVER_POS)
    await DriverService.upsert_status(db_session, mid["id"], True, Coordinates(28.6389, 77.2090))
    await DriverService.upsert_status(db_session, offline["id"], False, NEAR_DRIVER_POS)
    await DriverService.upsert_status(db_session, no_location["id"], True)

    result = await DriverService.find_nearby_drivers(db_session, PICKUP, 5.0)

    assert [d["driver_id"] for d in result] == [near["id"], mid["id"]]
    distances = [d["distance_km"] for d in result]
    assert distances == sorted(distances)
    assert all(d <= 5.0 for d in distances)
    assert distances[0] == pytest.approx(1.2, abs=0.05)


@pytest.mark.asyncio
@pytest.mark.parametrize("radius", [0.0, -1.0, float("inf"), float("nan")])
async def test_find_nearby_rejects_bad_radius(db_session, radius) -> None:
    """Radius must be a positive finite number."""
    with pytest.raises(BadRequestException):
        await DriverService.find_nearby_drivers(db_session, PICKUP, radius)


def test_rank_by_distance_without_radius_lists_unknown_last() -> None:
    """Broadcast ranking keeps drivers without a location at the end."""
    unknown_id, near_id = uuid4(), uuid4()
    drivers = [
        {"user_id": unknown_id, "latitude": None, "longitude": None, "updated_at": None},
        {
            "user_id": near_id,
            "latitude": NEAR_DRIVER_POS.latitude,
            "longitude": NEAR_DRIVER_POS.longitude,
            "updated_at": None,
        },
    ]

    ranked = DriverService.rank_by_distance(PICKUP, drivers, None)

    assert [d["driver_id"] for d in ranked] == [near_id, unknown_id]
    assert ranked[1]["distance_km"] is None


@pytest.mark.asyncio
async def test_update_my_status_endpoint(client: AsyncClient, make_user) -> None:
    """Drivers toggle availability with a position."""
    driver = await make_user("driver")

    response = await client.put(
        "/api/v1/drivers/me/status",
        json={"available": True, "lat": 28.62, "lng": 77.21},
        headers=headers_for(driver),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["available"] is True
    assert data["latitude"] == pytest.approx(28.62)

    response = await client.get("/api/v1/drivers/me/status", headers=headers_for(driver))
    assert response.status_code == 200
    assert response.json()["user_id"] == str(driver["id"])


@pytest.mark.asyncio
async def test_update_status_requires_both_coordinates(client: AsyncClient, make_user) -> None:
    """A lone latitude is a validation error (400)."""
    driver = await make_user("driver")

    response = await client.put(
        "/api/v1/drivers/me/status",
        json={"available": True, "lat": 28.62},
        headers=headers_for(driver),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_customer_cannot_set_driver_status(client: AsyncClient, auth_headers) -> None:
    """Only drivers have an availability status."""
    response = await client.put(
        "/api/v1/drivers/me/status",
        json={"available": True},
        headers=auth_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_get_status_not_set(client: AsyncClient, make_user) -> None:
    """A driver who never toggled gets 404."""
    driver = await make_user("driver")
    response = await client.get("/api/v1/drivers/me/status", headers=headers_for(driver))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_nearby_endpoint(client: AsyncClient, auth_headers, driver_near, driver_far) -> None:
    """Customers see only drivers inside the radius."""
    response = await client.get(
        "/api/v1/drivers/nearby",
        params={"lat": PICKUP.latitude, "lng": PICKUP.longitude, "radius_km": 5},
        headers=auth_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    assert data["radius_km"] == 5
    assert data["drivers"][0]["driver_id"] == str(driver_near["id"])


@pytest.mark.asyncio
async def test_nearby_rejects_radius_above_max(client: AsyncClient, auth_headers) -> None:
    """Radius is capped by configuration."""
    response = await client.get(
        "/api/v1/drivers/nearby",
        params={"lat": PICKUP.latitude, "lng": PICKUP.longitude, "radius_km": 500},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "BadRequestException"
