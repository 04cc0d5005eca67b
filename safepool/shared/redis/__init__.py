"""Redis client and alert change feed."""

from .client import get_redis, close_redis
from .feed import (
    AlertFeedPublisher,
    AlertFeedSubscriber,
    channel_for,
    get_alert_publisher,
    get_alert_subscriber,
)

__all__ = [
    # Client
    "get_redis",
    "close_redis",
    # Change feed
    "AlertFeedPublisher",
    "AlertFeedSubscriber",
    "channel_for",
    "get_alert_publisher",
    "get_alert_subscriber",
]
