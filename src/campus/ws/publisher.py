"""Publish real-time events to Redis pub/sub for the WebSocket bridge.

Channels:
    ws:user:<user_id>  - delivered to every socket of that user
    ws:room:<room_id>  - delivered to every socket subscribed to the room

Publishing is fire-and-forget: a missing client (tests, local dev) or a Redis
error never fails the originating request.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger()


def _encode(event: str, data: dict[str, Any], exclude_user_id: str | None = None) -> str:
    payload: dict[str, Any] = {"event": event, "data": data}
    if exclude_user_id is not None:
        payload["exclude_user_id"] = exclude_user_id
    return json.dumps(payload, default=str)


async def publish_to_user(redis: Redis | None, user_id: str, event: str, data: dict[str, Any]) -> bool:
    if redis is None:
        return False
    try:
        await redis.publish(f"ws:user:{user_id}", _encode(event, data))
    except Exception:  # noqa: BLE001
        logger.warning("ws_publish_failed", channel="user", user_id=user_id, ws_event=event, exc_info=True)
        return False
    return True


async def publish_to_room(
    redis: Redis | None,
    room_id: str,
    event: str,
    data: dict[str, Any],
    exclude_user_id: str | None = None,
) -> bool:
    """Broadcast to room subscribers, optionally skipping the originating user."""
    if redis is None:
        return False
    try:
        await redis.publish(f"ws:room:{room_id}", _encode(event, data, exclude_user_id))
    except Exception:  # noqa: BLE001
        logger.warning("ws_publish_failed", channel="room", room_id=room_id, ws_event=event, exc_info=True)
        return False
    return True
