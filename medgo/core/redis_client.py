"""Shared Redis client plus the fail-open helpers built on it.

Redis backs three concerns: the per-user dispatch rate limit, the driver
contact cache and the mirror of the realtime change feed. None of them may
block an emergency dispatch, so every helper swallows Redis errors and
degrades to "allowed", "miss" or "not published".
"""

import json
from typing import Any, cast

import redis
import structlog

from medgo.config import settings

logger = structlog.get_logger(__name__)

_redis_client: redis.Redis | None = None


def _connect() -> redis.Redis:
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        username=settings.redis_username,
        password=settings.redis_password,
        decode_responses=settings.redis_decode_responses,
        socket_connect_timeout=5,
        socket_keepalive=True,
        health_check_interval=30,
    )


def get_redis_client() -> redis.Redis:
    """Return the process-wide client, connecting lazily."""
    global _redis_client
    if _redis_client is None:
        _redis_client = _connect()
    return _redis_client


async def check_redis_connection() -> bool:
    """Ping Redis; False on any error."""
    try:
        get_redis_client().ping()
    except Exception as e:
        logger.warning("redis_ping_failed", error=str(e))
        return False
    return True


def close_redis_connection() -> None:
    """Close and forget the shared client."""
    global _redis_client
    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


def publish_json(redis_client: redis.Redis, channel: str, payload: Any) -> int:
    """
    Publish a JSON payload on a pub/sub channel.

    Returns:
        Number of receivers, or 0 when the publish failed
    """
    try:
        return cast(int, redis_client.publish(channel, json.dumps(payload, default=str)))
    except Exception as e:
        logger.warning("redis_publish_failed", channel=channel, error=str(e))
        return 0


class RateLimiter:
    """Fixed-window counter per key (e.g. ``ratelimit:dispatch:<user_id>``)."""

    def __init__(self, redis_client: redis.Redis):
        """Initialize rate limiter with Redis client."""
        self.redis = redis_client

    def allow(self, key: str, limit: int, window: int = 60) -> bool:
        """
        Count one call against ``key`` and say whether it is within ``limit``.

        The window starts at the first call; a refused call is not counted.
        """
        try:
            current = cast(str | None, self.redis.get(key))
            if current is None:
                self.redis.setex(key, window, 1)
                return True
            if int(current) >= limit:
                return False
            self.redis.incr(key)
        except Exception as e:
            logger.warning("rate_limit_unavailable", key=key, error=str(e))
        return True


class CacheManager:
    """JSON values in Redis with optional TTL."""

    def __init__(self, redis_client: redis.Redis):
        """Initialize cache manager with Redis client."""
        self.redis = redis_client

    def get_json(self, key: str) -> Any | None:
        """Cached value, or None on a miss or Redis error."""
        try:
            raw = cast(str | None, self.redis.get(key))
            return json.loads(raw) if raw else None
        except Exception:
            return None

    def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store ``value``; False when Redis refused the write."""
        encoded = json.dumps(value, default=str)
        try:
            if ttl:
                self.redis.setex(key, ttl, encoded)
            else:
                self.redis.set(key, encoded)
        except Exception:
            return False
        return True

    def delete(self, key: str) -> bool:
        """Drop ``key``; False when Redis refused the call."""
        try:
            self.redis.delete(key)
        except Exception:
            return False
        return True
