"""Server-Sent Events (SSE) alert change feed."""

import asyncio
import json
from typing import AsyncGenerator, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Request
from redis.exceptions import RedisError
from sse_starlette.sse import EventSourceResponse

from ...shared.redis.feed import AlertFeedSubscriber, get_alert_subscriber
from ..config import config

logger = structlog.get_logger(__name__)

router = APIRouter()


def _heartbeat() -> dict:
    return {"event": "heartbeat", "data": json.dumps({"status": "ok"})}


async def alert_event_generator(
    subscriber: AlertFeedSubscriber,
    request: Request,
    facility_id: Optional[UUID] = None,
    heartbeat_seconds: float = config.SSE_HEARTBEAT_SECONDS,
) -> AsyncGenerator[dict, None]:
    """
    Forward alert changes as SSE events, with heartbeats while idle.

    Yields:
        SSE event dictionaries: connected, insert, update, heartbeat, error
    """
    yield {
        "event": "connected",
        "data": json.dumps({
            "status": "connected",
            "facility_id": str(facility_id) if facility_id else None,
        }),
    }

    feed = subscriber.subscribe(facility_id)
    pending: Optional[asyncio.Future] = None

    try:
        while not await request.is_disconnected():
            if pending is None:
                pending = asyncio.ensure_future(feed.__anext__())

            done, _ = await asyncio.wait({pending}, timeout=heartbeat_seconds)
            if not done:
                yield _heartbeat()
                continue

            try:
                change = pending.result()
            except StopAsyncIteration:
                break
            finally:
                pending = None

            yield {
                "event": change.event,
                "id": str(change.alert.id),
                "data": change.model_dump_json(),
            }

    except (RedisError, OSError) as exc:
        logger.warning("alert_feed_unavailable", error=str(exc))
        yield {"event": "error", "data": json.dumps({"error": "alert feed unavailable"})}

        # Heartbeat-only mode; observers fall back to polling the alert list
        while not await request.is_disconnected():
            await asyncio.sleep(heartbeat_seconds)
            yield _heartbeat()

    finally:
        if pending is not None and not pending.done():
            pending.cancel()
            try:
                await pending
            except (asyncio.CancelledError, StopAsyncIteration):
                pass
        await feed.aclose()


async def get_feed_subscriber() -> AlertFeedSubscriber:
    """Alert feed subscriber dependency."""
    return await get_alert_subscriber()


@router.get("/sse/alerts")
async def sse_alerts(
    request: Request,
    facility_id: Optional[UUID] = None,
    subscriber: AlertFeedSubscriber = Depends(get_feed_subscriber),
):
    """
    Subscribe to alert inserts and updates via Server-Sent Events.

    Omit facility_id to receive changes for every facility.

    Event types:
    - connected: Connection established
    - insert: Alert created (data is {"event", "alert"})
    - update: Alert dismissed
    - heartbeat: Keep-alive ping
    - error: Feed unavailable
    """
    return EventSourceResponse(
        alert_event_generator(subscriber, request, facility_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
