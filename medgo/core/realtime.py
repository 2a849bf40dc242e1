"""In-process change feed for realtime dashboard updates."""

import asyncio
from collections.abc import Iterable
from typing import Any

import redis
import structlog
from fastapi.encoders import jsonable_encoder

from medgo.config import settings
from medgo.core.redis_client import publish_json
from medgo.schemas.realtime import ChangeEvent

logger = structlog.get_logger(__name__)


class Subscription:
    """A filtered, bounded queue of change events for one consumer."""

    def __init__(
        self,
        feed: "ChangeFeed",
        tables: Iterable[str],
        filters: dict[str, Any],
        maxsize: int,
    ):
        """Initialize subscription for the given tables and equality filters."""
        self.feed = feed
        self.tables = frozenset(tables)
        self.filters = {column: str(value) for column, value in filters.items()}
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def matches(self, event: ChangeEvent) -> bool:
        """Return True if the event belongs to this subscription."""
        if event.table not in self.tables:
            return False
        return all(str(event.value(column)) == value for column, value in self.filters.items())

    def offer(self, event: ChangeEvent) -> None:
        """Enqueue an event, dropping the oldest one when the queue is full."""
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
            logger.warning(
                "realtime_event_dropped",
                tables=sorted(self.tables),
                filters=self.filters,
                dropped=self.dropped,
            )
        self.queue.put_nowait(event)

    async def get(self, timeout: float | None = None) -> ChangeEvent:
        """Wait for the next event."""
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout=timeout)

    def get_nowait(self) -> ChangeEvent:
        """Return the next queued event or raise asyncio.QueueEmpty."""
        return self.queue.get_nowait()

    def close(self) -> None:
        """Detach from the feed."""
        self.feed.unsubscribe(self)


class ChangeFeed:
    """
    Fan committed row changes out to subscribers.

    Delivery is at-most-once and ordered per subscription. Events are also
    mirrored to a Redis pub/sub channel when a client is attached, so other
    workers or services can follow the same stream.
    """

    def __init__(self, queue_size: int = 100, redis_channel: str = "medgo:changes"):
        """Initialize an empty feed."""
        self.queue_size = queue_size
        self.redis_channel = redis_channel
        self._subscriptions: set[Subscription] = set()
        self._redis: redis.Redis | None = None

    def attach_redis(self, redis_client: redis.Redis | None) -> None:
        """Mirror published events to Redis (None disables mirroring)."""
        self._redis = redis_client

    def subscribe(self, tables: Iterable[str], **filters: Any) -> Subscription:
        """Register a subscriber for the given tables and column filters."""
        subscription = Subscription(self, tables, filters, self.queue_size)
        self._subscriptions.add(subscription)
        logger.info(
            "realtime_subscribed",
            tables=sorted(subscription.tables),
            filters=subscription.filters,
            subscribers=len(self._subscriptions),
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscriber; unknown subscriptions are ignored."""
        self._subscriptions.discard(subscription)

    @property
    def subscriber_count(self) -> int:
        """Number of live subscriptions."""
        return len(self._subscriptions)

    def publish(self, event: ChangeEvent) -> int:
        """
        Deliver an event to every matching subscriber.

        Must only be called after the change has been committed.

        Returns:
            Number of local subscribers that received the event
        """
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.matches(event):
                subscription.offer(event)
                delivered += 1

        if self._redis is not None:
            publish_json(self._redis, self.redis_channel, jsonable_encoder(event))

        return delivered

    def publish_rows(
        self,
        table: str,
        event_type: str,
        rows: Iterable[dict[str, Any]],
        old_rows: Iterable[dict[str, Any] | None] | None = None,
    ) -> int:
        """Publish one event per row."""
        rows = list(rows)
        olds = list(old_rows) if old_rows is not None else [None] * len(rows)
        delivered = 0
        for row, old in zip(rows, olds, strict=True):
            delivered += self.publish(
                ChangeEvent(table=table, event_type=event_type, record=row, old_record=old)
            )
        return delivered


change_feed = ChangeFeed(
    queue_size=settings.realtime_queue_size,
    redis_channel=settings.realtime_redis_channel,
)


def get_change_feed() -> ChangeFeed:
    """Dependency returning the process-wide change feed."""
    return change_feed
