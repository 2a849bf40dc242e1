"""Tests for Redis-backed caching, rate limiting and publishing."""

import json
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from medgo.core.redis_client import CacheManager, RateLimiter, publish_json
from medgo.services.user_service import UserService


def test_cache_manager_get_json():
    """Test CacheManager get_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    # Test cache miss
    mock_redis.get.return_value = None
    assert cache_manager.get_json("test_key") is None
    mock_redis.get.assert_called_once_with("test_key")

    # Test cache hit
    mock_redis.reset_mock()
    mock_redis.get.return_value = '{"full_name": "Ravi Kumar", "phone": "9876500001"}'
    assert cache_manager.get_json("test_key") == {"full_name": "Ravi Kumar", "phone": "9876500001"}


def test_cache_manager_set_json():
    """Test CacheManager set_json method."""
    mock_redis = MagicMock()
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.set_json("test_key", {"a": 1}) is True
    mock_redis.set.assert_called_once()

    mock_redis.reset_mock()
    assert cache_manager.set_json("test_key", {"a": 1}, ttl=300) is True
    mock_redis.setex.assert_called_once_with("test_key", 300, '{"a": 1}')


def test_cache_manager_errors_are_misses():
    """A broken Redis degrades to no caching."""
    mock_redis = MagicMock()
    mock_redis.get.side_effect = ConnectionError("redis down")
    mock_redis.set.side_effect = ConnectionError("redis down")
    mock_redis.delete.side_effect = ConnectionError("redis down")
    cache_manager = CacheManager(redis_client=mock_redis)

    assert cache_manager.get_json("test_key") is None
    assert cache_manager.set_json("test_key", {"a": 1}) is False
    assert cache_manager.delete("test_key") is False


def test_rate_limiter_counts_within_window():
    mock_redis = MagicMock()
    limiter = RateLimiter(mock_redis)

    mock_redis.get.return_value = None
    assert limiter.allow("ratelimit:dispatch:u1", limit=5) is True
    mock_redis.setex.assert_called_once_with("ratelimit:dispatch:u1", 60, 1)

    mock_redis.get.return_value = "3"
    assert limiter.allow("ratelimit:dispatch:u1", limit=5) is True
    mock_redis.incr.assert_called_once_with("ratelimit:dispatch:u1")

    mock_redis.get.return_value = "5"
    assert limiter.allow("ratelimit:dispatch:u1", limit=5) is False


def test_rate_limiter_fails_open():
    mock_redis = MagicMock()
    mock_redis.get.side_effect = ConnectionError("redis down")

    assert RateLimiter(mock_redis).allow("key", limit=1) is True


def test_publish_json():
    mock_redis = MagicMock()
    mock_redis.publish.return_value = 2
    request_id = uuid4()

    assert publish_json(mock_redis, "medgo:changes", {"request_id": request_id}) == 2
    channel, payload = mock_redis.publish.call_args.args
    assert channel == "medgo:changes"
    assert json.loads(payload) == {"request_id": str(request_id)}


def test_publish_json_failure_returns_zero():
    mock_redis = MagicMock()
    mock_redis.publish.side_effect = ConnectionError("redis down")

    assert publish_json(mock_redis, "medgo:changes", {}) == 0


@pytest.mark.asyncio
async def test_contact_lookup_is_cached(db_session, driver_near, driver_far):
    """Contacts come from the cache when present and are stored on a miss."""
    mock_redis = MagicMock()
    cached = {"id": str(driver_near["id"]), "full_name": "Cached Name", "phone": "9000000000"}
    mock_redis.get.side_effect = lambda key: (
        json.dumps(cached) if key == f"user:contact:{driver_near['id']}" else None
    )
    service = UserService(CacheManager(mock_redis))

    contacts = await service.get_contacts(db_session, [driver_near["id"], driver_far["id"]])

    assert contacts[str(driver_near["id"])]["full_name"] == "Cached Name"
    assert contacts[str(driver_far["id"])]["phone"] == "+919876500002"
    mock_redis.setex.assert_called_once()
    key, ttl, _ = mock_redis.setex.call_args.args
    assert key == f"user:contact:{driver_far['id']}"
    assert ttl == UserService.CONTACT_CACHE_TTL
