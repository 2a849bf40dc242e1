"""Tests for health endpoints and error formatting."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "x-request-id" in response.headers
    assert "x-process-time" in response.headers


@pytest.mark.asyncio
async def test_ping(client: AsyncClient) -> None:
    response = await client.get("/api/v1/ping")
    assert response.json() == {"message": "pong"}


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient) -> None:
    response = await client.get("/api/v1/ping", headers={"X-Request-ID": "abc-123"})
    assert response.headers["x-request-id"] == "abc-123"


@pytest.mark.asyncio
async def test_detailed_health_reports_dependencies(client: AsyncClient) -> None:
    with (
        patch(
            "medgo.api.v1.endpoints.health.check_database_connection",
            AsyncMock(return_value=True),
        ),
        patch(
            "medgo.api.v1.endpoints.health.check_redis_connection",
            AsyncMock(return_value=False),
        ),
    ):
        response = await client.get("/api/v1/health/detailed")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["database"] == "healthy"
    assert data["redis"] == "unhealthy"
    assert data["dispatch_policy"] == "radius"
    assert data["channels"] == {"sms": False, "email": False, "whatsapp": False, "push": False}


@pytest.mark.asyncio
async def test_not_found_error_format(client: AsyncClient, auth_headers) -> None:
    response = await client.get(
        "/api/v1/dispatch/requests/00000000-0000-0000-0000-000000000000",
        headers=auth_headers,
    )

    assert response.status_code == 404
    assert response.json() == {
        "error": "NotFoundException",
        "message": "Request not found",
        "path": "/api/v1/dispatch/requests/00000000-0000-0000-0000-000000000000",
    }


@pytest.mark.asyncio
async def test_invalid_token_is_401(client: AsyncClient) -> None:
    response = await client.get(
        "/api/v1/dispatch/requests", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_malformed_path_parameter_is_400(client: AsyncClient, auth_headers) -> None:
    response = await client.get("/api/v1/dispatch/requests/not-a-uuid", headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"
    assert response.json()["details"]
