"""WebSocket connection manager.

Tracks active sockets per user and the chat rooms each socket follows,
and fans events out to them. Frames are ``{"event": ..., "data": ...}``.
"""

from __future__ import annotations

import json
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

import structlog
from fastapi import WebSocket

logger = structlog.get_logger()


@dataclass
class ClientConnection:
    """A single authenticated socket."""

    websocket: WebSocket
    user_id: str
    campus_id: str | None
    device_id: str | None = None
    rooms: set[str] = field(default_factory=set)
    connected_at: float = field(default_factory=time.time)
    messages_sent: int = 0


def encode_frame(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": data}, default=str)


class ConnectionManager:
    """Manages all active WebSocket connections.

    Safe for asyncio via the single-threaded event loop.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ClientConnection] = {}  # conn_id -> client
        self._rooms: dict[str, set[str]] = defaultdict(set)  # room_id -> {conn_ids}
        self._user_connections: dict[str, set[str]] = defaultdict(set)  # user_id -> {conn_ids}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def get(self, conn_id: str) -> ClientConnection | None:
        return self._connections.get(conn_id)

    async def connect(
        self,
        websocket: WebSocket,
        conn_id: str,
        user_id: str,
        campus_id: str | None,
        device_id: str | None = None,
    ) -> ClientConnection:
        """Accept a new WebSocket connection."""
        await websocket.accept()
        client = ClientConnection(websocket=websocket, user_id=user_id, campus_id=campus_id, device_id=device_id)
        self._connections[conn_id] = client
        self._user_connections[user_id].add(conn_id)
        logger.info("ws_connected", conn_id=conn_id, user_id=user_id, device_id=device_id)
        return client

    async def disconnect(self, conn_id: str) -> None:
        """Remove a connection and its room subscriptions."""
        client = self._connections.pop(conn_id, None)
        if client is None:
            return

        for room_id in client.rooms:
            self._rooms[room_id].discard(conn_id)
            if not self._rooms[room_id]:
                del self._rooms[room_id]

        self._user_connections[client.user_id].discard(conn_id)
        if not self._user_connections[client.user_id]:
            del self._user_connections[client.user_id]

        logger.info("ws_disconnected", conn_id=conn_id, user_id=client.user_id)

    def join_room(self, conn_id: str, room_id: str) -> bool:
        client = self._connections.get(conn_id)
        if client is None:
            return False
        client.rooms.add(room_id)
        self._rooms[room_id].add(conn_id)
        logger.debug("ws_room_joined", conn_id=conn_id, room_id=room_id)
        return True

    def leave_room(self, conn_id: str, room_id: str) -> bool:
        client = self._connections.get(conn_id)
        if client is None:
            return False
        client.rooms.discard(room_id)
        if room_id in self._rooms:
            self._rooms[room_id].discard(conn_id)
            if not self._rooms[room_id]:
                del self._rooms[room_id]
        return True

    async def _send(self, conn_ids: list[str], payload: str) -> int:
        sent = 0
        failed: list[str] = []
        for conn_id in conn_ids:
            client = self._connections.get(conn_id)
            if client is None:
                continue
            try:
                await client.websocket.send_text(payload)
                client.messages_sent += 1
                sent += 1
            except Exception:  # noqa: BLE001
                failed.append(conn_id)

        for conn_id in failed:
            await self.disconnect(conn_id)
        return sent

    async def broadcast_to_room(
        self, room_id: str, event: str, data: Any, exclude_user_id: str | None = None
    ) -> int:
        """Send to every socket following the room. Returns the number reached."""
        conn_ids = [
            conn_id
            for conn_id in self._rooms.get(room_id, set())
            if exclude_user_id is None or self._connections[conn_id].user_id != exclude_user_id
        ]
        if not conn_ids:
            return 0
        return await self._send(conn_ids, encode_frame(event, data))

    async def send_to_user(self, user_id: str, event: str, data: Any) -> int:
        """Send to every socket of one user, whatever rooms they follow."""
        conn_ids = list(self._user_connections.get(user_id, set()))
        if not conn_ids:
            return 0
        return await self._send(conn_ids, encode_frame(event, data))

    def is_online(self, user_id: str) -> bool:
        return bool(self._user_connections.get(user_id))

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_connections": len(self._connections),
            "unique_users": len(self._user_connections),
            "rooms": {room_id: len(conns) for room_id, conns in self._rooms.items() if conns},
        }


# Global singleton
manager = ConnectionManager()
