"""Bridges Redis pub/sub to WebSocket clients.

Services publish to ``ws:user:<id>`` and ``ws:room:<id>`` (see
``campus.ws.publisher``); every API process runs one bridge that relays
those events to the sockets it holds.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import redis.asyncio as aioredis
import structlog

from campus.ws.manager import ConnectionManager, manager

logger = structlog.get_logger()

PATTERNS = ("ws:user:*", "ws:room:*")


async def dispatch(message: dict[str, Any], target: ConnectionManager = manager) -> int:
    """Deliver one pub/sub message to local sockets. Returns sockets reached."""
    channel = message.get("channel", "")
    if isinstance(channel, bytes):
        channel = channel.decode()

    try:
        data = message.get("data", b"")
        if isinstance(data, bytes):
            data = data.decode()
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("pubsub_invalid_message", channel=channel)
        return 0
    if not isinstance(payload, dict):
        logger.warning("pubsub_invalid_message", channel=channel)
        return 0

    event = payload.get("event", "notification")
    event_data = payload.get("data", {})
    prefix, _, target_id = channel.rpartition(":")

    if prefix == "ws:user":
        sent = await target.send_to_user(target_id, event, event_data)
    elif prefix == "ws:room":
        sent = await target.broadcast_to_room(
            target_id, event, event_data, exclude_user_id=payload.get("exclude_user_id")
        )
    else:
        return 0

    if sent > 0:
        logger.debug("pubsub_relayed", channel=channel, ws_event=event, recipients=sent)
    return sent


class PubSubBridge:
    """Subscribes to Redis pub/sub and pushes messages to WebSocket clients."""

    def __init__(self, redis_client: aioredis.Redis) -> None:
        self.redis = redis_client
        self._running = False

    async def start(self) -> None:
        """Listen until ``stop()`` is called or the task is cancelled."""
        self._running = True
        pubsub = self.redis.pubsub()
        await pubsub.psubscribe(*PATTERNS)
        logger.info("pubsub_bridge_started", patterns=list(PATTERNS))

        try:
            while self._running:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None or message.get("type") != "pmessage":
                    continue
                await dispatch(message)
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.punsubscribe()
            await pubsub.aclose()
            logger.info("pubsub_bridge_stopped")

    async def stop(self) -> None:
        """Signal the bridge to stop."""
        self._running = False
