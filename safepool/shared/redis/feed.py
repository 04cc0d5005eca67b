"""Alert change feed over Redis pub/sub."""

import json
from typing import AsyncGenerator, Optional
from uuid import UUID

import redis.asyncio as redis
import structlog
from pydantic import ValidationError as SchemaError

from ..schemas.alert import AlertChange, AlertResponse
from .client import get_redis

logger = structlog.get_logger(__name__)

# Channel patterns
ALERT_CHANNEL_PREFIX = "alerts:"
ALL_FACILITIES_CHANNEL = f"{ALERT_CHANNEL_PREFIX}all"


def channel_for(facility_id: Optional[UUID | str]) -> str:
    """Channel carrying changes for one facility, or all facilities."""
    if facility_id is None:
        return ALL_FACILITIES_CHANNEL
    return f"{ALERT_CHANNEL_PREFIX}{facility_id}"


class AlertFeedPublisher:
    """Publishes alert inserts and updates for observers."""

    def __init__(self, client: redis.Redis):
        self.client = client

    async def publish(self, change: AlertChange) -> int:
        """
        Publish one change to the facility channel and the all-facilities channel.

        Returns:
            Number of subscribers that received the message
        """
        message = change.model_dump_json()
        receivers = 0
        for channel in (channel_for(change.alert.facility_id), ALL_FACILITIES_CHANNEL):
            receivers += await self.client.publish(channel, message)
        return receivers

    async def publish_insert(self, alert: AlertResponse) -> int:
        """Publish a newly created alert."""
        return await self.publish(AlertChange(event="insert", alert=alert))

    async def publish_update(self, alert: AlertResponse) -> int:
        """Publish an updated (dismissed) alert."""
        return await self.publish(AlertChange(event="update", alert=alert))


class AlertFeedSubscriber:
    """
    Subscribes to alert changes for one facility or all facilities.

    Each call to subscribe() opens its own pubsub connection; closing the
    generator (or cancelling its consumer) releases it, and calling
    subscribe() again restarts the feed.
    """

    def __init__(self, client: redis.Redis):
        self.client = client

    async def subscribe(
        self,
        facility_id: Optional[UUID | str] = None,
    ) -> AsyncGenerator[AlertChange, None]:
        """
        Subscribe to alert changes.

        Yields:
            AlertChange messages in per-alert order
        """
        channel = channel_for(facility_id)
        pubsub = self.client.pubsub()

        try:
            await pubsub.subscribe(channel)

            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    yield AlertChange.model_validate(json.loads(message["data"]))
                except (json.JSONDecodeError, SchemaError) as exc:
                    logger.warning("alert_feed_bad_message", channel=channel, error=str(exc))
                    continue

        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()


async def get_alert_publisher() -> AlertFeedPublisher:
    """Get an alert feed publisher instance."""
    client = await get_redis()
    return AlertFeedPublisher(client)


async def get_alert_subscriber() -> AlertFeedSubscriber:
    """Get an alert feed subscriber instance."""
    client = await get_redis()
    return AlertFeedSubscriber(client)
