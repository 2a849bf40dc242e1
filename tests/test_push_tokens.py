"""Tests for push token registration."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from medgo.models.push_tokens import push_tokens


@pytest.mark.asyncio
async def test_register_token(client: AsyncClient, auth_headers, customer) -> None:
    response = await client.post(
        "/api/v1/push-tokens",
        json={"fcm_token": "token-1", "platform": "android"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["fcm_token"] == "token-1"
    assert data["is_active"] is True
    assert data["user_id"] == str(customer["id"])


@pytest.mark.asyncio
async def test_reregistering_keeps_one_row(client: AsyncClient, auth_headers, db_session) -> None:
    body = {"fcm_token": "token-1", "platform": "android"}
    first = await client.post("/api/v1/push-tokens", json=body, headers=auth_headers)
    second = await client.post("/api/v1/push-tokens", json=body, headers=auth_headers)

    assert first.json()["id"] == second.json()["id"]
    result = await db_session.execute(select(push_tokens))
    assert len(result.all()) == 1


@pytest.mark.asyncio
async def test_rotation_deactivates_old_token(
    client: AsyncClient, auth_headers, db_session
) -> None:
    """A new token on the same platform retires the previous one."""
    await client.post(
        "/api/v1/push-tokens",
        json={"fcm_token": "old", "platform": "web"},
        headers=auth_headers,
    )
    await client.post(
        "/api/v1/push-tokens",
        json={"fcm_token": "new", "platform": "web"},
        headers=auth_headers,
    )

    result = await db_session.execute(select(push_tokens.c.fcm_token, push_tokens.c.is_active))
    assert dict(result.all()) == {"old": False, "new": True}


@pytest.mark.asyncio
async def test_invalid_platform(client: AsyncClient, auth_headers) -> None:
    response = await client.post(
        "/api/v1/push-tokens",
        json={"fcm_token": "token-1", "platform": "symbian"},
        headers=auth_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_deactivate_token(client: AsyncClient, auth_headers, db_session) -> None:
    body = {"fcm_token": "token-1", "platform": "ios"}
    await client.post("/api/v1/push-tokens", json=body, headers=auth_headers)

    response = await client.request(
        "DELETE", "/api/v1/push-tokens", json=body, headers=auth_headers
    )

    assert response.status_code == 204
    result = await db_session.execute(select(push_tokens.c.is_active))
    assert result.scalar_one() is False


@pytest.mark.asyncio
async def test_deactivate_unknown_token(client: AsyncClient, auth_headers) -> None:
    response = await client.request(
        "DELETE",
        "/api/v1/push-tokens",
        json={"fcm_token": "missing", "platform": "ios"},
        headers=auth_headers,
    )
    assert response.status_code == 404
