"""WebSocket endpoint: JWT auth, room subscriptions and the chat event surface.

Protocol (all frames are ``{"event": ..., "data": {...}}``):

    Client -> Server                 Server -> Client (success / error)
    media:upload:request             media:upload:url / media:upload:error
    media:upload:complete            media:upload:confirmed / media:upload:error
    chats:sync                       chats:synced / sync:error
    messages:sync                    messages:synced / sync:error
    device:register                  device:registered / device:error
    device:list                      device:list:response / device:error
    device:logout                    device:logged-out / device:error
    message:send                     message:sent / message:error
    message:forward                  message:forwarded / message:forward:error
    message:star                     message:starred / message:star:error
    message:info                     message:info:response / message:info:error
    room:join / room:leave           room:joined / room:left / room:error
    ping                             pong

Each event runs in its own database session, committed on success and
rolled back on failure.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import jwt
import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from campus.auth.jwt import verify_token
from campus.auth.policy import check_permission
from campus.auth.service import get_user_by_id, is_campus_active
from campus.chat.enhanced import forward_message, get_message_info, toggle_star
from campus.chat.media import complete_upload, request_upload_url
from campus.chat.schemas import (
    DeviceRegisterRequest,
    MessagesSyncRequest,
    SocketForwardRequest,
    SocketMessageSendRequest,
    SocketUploadCompleteRequest,
    UploadUrlRequest,
)
from campus.chat.service import list_user_rooms, require_room_access, send_message, serialize_message
from campus.chat.sync import (
    SyncResult,
    deactivate_device,
    get_user_devices,
    register_device,
    sync_chats,
    sync_messages,
    update_device_activity,
)
from campus.config import get_settings
from campus.database import get_session_factory
from campus.db.base import utcnow
from campus.db.models import User
from campus.exceptions import AccessDeniedError, NotFoundError, UpstreamServiceError
from campus.redis_client import get_redis_or_none
from campus.ws.manager import ClientConnection, manager

logger = structlog.get_logger()

router = APIRouter()


@dataclass
class EventContext:
    conn_id: str
    user: User
    client: ClientConnection

    @property
    def campus_id(self) -> str:
        return self.user.campus_id  # type: ignore[return-value]


Handler = Callable[[AsyncSession, EventContext, dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class Route:
    handler: Handler
    success: str
    error: str
    permission: tuple[str, str]


def _require(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        msg = f"{key} is required"
        raise ValueError(msg)
    return value


# --- media ---


async def _media_request(db: AsyncSession, ctx: EventContext, data: dict[str, Any]) -> Any:
    body = UploadUrlRequest.model_validate(data)
    return await request_upload_url(
        db, ctx.campus_id, ctx.user.id, file_name=body.file_name, file_type=body.file_type, file_size=body.file_size
    )


async def _media_complete(db: AsyncSession, ctx: EventContext, data: dict[str, Any]) -> Any:
    body = SocketUploadCompleteRequest.model_validate(data)
    return await complete_upload(
        db, ctx.campus_id, ctx.user.id, body.upload_id, width=body.width, height=body.height, duration=body.duration
    )


# --- sync & devices ---


async def _chats_sync(db: AsyncSession, ctx: EventContext, data: dict[str, Any]) -> Any:
    return await sync_chats(db, ctx.user.id, ctx.campus_id, data.get("device_id") or ctx.client.device_id)


async def _messages_sync(db: AsyncSession, ctx: EventContext, data: dict[str, Any]) -> Any:
    body = MessagesSyncRequest.model_validate(data)
    settings = get_settings()
    return await sync_messages(
        db,
        ctx.user.id,
        ctx.campus_id,
        body.room_id,
        since_timestamp=body.since_timestamp,
        since_sequence=body.since_sequence,
        limit=min(body.limit or settings.sync_default_limit, settings.sync_max_limit),
        device_id=body.device_id or ctx.client.device_id,
    )


async def _device_register(db: AsyncSession, ctx: EventContext, data: dict[str, Any]) -> Any:
    body = DeviceRegisterRequest.model_validate(data)
    websocket = ctx.client.websocket
    attrs = body.model_dump(exclude={"device_id"})
    attrs["ip_address"] = websocket.client.host if websocket.client else None
    attrs["user_agent"] = websocket.headers.get("user-agent")
    result = await register_device(db, ctx.user.id, ctx.campus_id, body.device_id, attrs)
    if result.success:
        ctx.client.device_id = body.device_id
    return result


async def _device_list(db: AsyncSession, ctx: EventContext, data: dict[str, Any]) -> Any:
    result = await get_user_devices(db, ctx.user.id)
    return SyncResult.ok({"devices": result.data}) if result.success else result


async def _device_logout(db: AsyncSession, ctx: EventContext, data: dict[str, Any]) -> Any:
    return await deactivate_device(db, ctx.user.id, _require(data, "device_id"))


# --- messages ---


async def _message_send(db: AsyncSession, ctx: EventContext, data: dict[str, Any]) -> Any:
    body = SocketMessageSendRequest.model_validate(data)
    message, created = await send_message(
        db,
        ctx.campus_id,
        ctx.user,
        body.room_id,
        content=body.content,
        message_type=body.message_type,
        file_url=body.file_url,
        file_name=body.file_name,
        file_size=body.file_size,
        client_message_id=body.client_message_id,
        reply_to=body.reply_to,
        meta_data=body.meta_data,
        redis=get_redis_or_none(),
    )
    return {"message": serialize_message(message), "created": created, "client_message_id": body.client_message_id}


async def _message_forward(db: AsyncSession, ctx: EventContext, data: dict[str, Any]) -> Any:
    body = SocketForwardRequest.model_validate(data)
    return await forward_message(
        db, ctx.user, ctx.campus_id, body.message_id, body.target_room_ids, redis=get_redis_or_none()
    )


async def _message_star(db: AsyncSession, ctx: EventContext, data: dict[str, Any]) -> Any:
    return await toggle_star(db, ctx.user.id, ctx.campus_id, _require(data, "message_id"))


async def _message_info(db: AsyncSession, ctx: EventContext, data: dict[str, Any]) -> Any:
    return await get_message_info(db, ctx.user.id, ctx.campus_id, _require(data, "message_id"))


# --- rooms ---


async def _room_join(db: AsyncSession, ctx: EventContext, data: dict[str, Any]) -> Any:
    room = await require_room_access(db, ctx.campus_id, _require(data, "room_id"), ctx.user.id)
    manager.join_room(ctx.conn_id, room.id)
    return {"room_id": room.id}


async def _room_leave(db: AsyncSession, ctx: EventContext, data: dict[str, Any]) -> Any:
    room_id = _require(data, "room_id")
    manager.leave_room(ctx.conn_id, room_id)
    return {"room_id": room_id}


async def _ping(db: AsyncSession, ctx: EventContext, data: dict[str, Any]) -> Any:
    if ctx.client.device_id:
        await update_device_activity(db, ctx.user.id, ctx.client.device_id)
    return {"timestamp": utcnow().isoformat()}


ROUTES: dict[str, Route] = {
    "media:upload:request": Route(_media_request, "media:upload:url", "media:upload:error", ("media", "upload")),
    "media:upload:complete": Route(
        _media_complete, "media:upload:confirmed", "media:upload:error", ("media", "upload")
    ),
    "chats:sync": Route(_chats_sync, "chats:synced", "sync:error", ("sync", "read")),
    "messages:sync": Route(_messages_sync, "messages:synced", "sync:error", ("sync", "read")),
    "device:register": Route(_device_register, "device:registered", "device:error", ("device", "manage")),
    "device:list": Route(_device_list, "device:list:response", "device:error", ("device", "manage")),
    "device:logout": Route(_device_logout, "device:logged-out", "device:error", ("device", "manage")),
    "message:send": Route(_message_send, "message:sent", "message:error", ("chat", "send")),
    "message:forward": Route(_message_forward, "message:forwarded", "message:forward:error", ("chat", "send")),
    "message:star": Route(_message_star, "message:starred", "message:star:error", ("chat", "read")),
    "message:info": Route(_message_info, "message:info:response", "message:info:error", ("chat", "read")),
    "room:join": Route(_room_join, "room:joined", "room:error", ("chat", "read")),
    "room:leave": Route(_room_leave, "room:left", "room:error", ("chat", "read")),
    "ping": Route(_ping, "pong", "error", ("chat", "read")),
}


async def handle_event(ctx: EventContext, event: str, data: dict[str, Any]) -> tuple[str, Any]:
    """Run one client event and return the ``(event, data)`` frame to answer with."""
    route = ROUTES.get(event)
    if route is None:
        return "error", {"message": f"Unknown event: {event}"}

    async with get_session_factory()() as db:
        try:
            check_permission(ctx.user, *route.permission)
            result = await route.handler(db, ctx, data)
        except (NotFoundError, AccessDeniedError, UpstreamServiceError, ValueError) as exc:
            await db.rollback()
            return route.error, {"message": str(exc)}
        except Exception:
            await db.rollback()
            logger.exception("ws_event_failed", conn_id=ctx.conn_id, ws_event=event)
            return route.error, {"message": "Internal error"}

        if isinstance(result, SyncResult):
            if not result.success:
                await db.rollback()
                return route.error, {"message": result.error}
            result = result.data
        await db.commit()
    return route.success, result


async def _authenticate(token: str) -> User:
    """Resolve the token to an active user of an active campus."""
    payload = verify_token(token, expected_type="access")
    async with get_session_factory()() as db:
        user = await get_user_by_id(db, str(payload["sub"]))
        if user is None or user.is_deleted or not user.is_active:
            msg = "User not found or inactive"
            raise jwt.InvalidTokenError(msg)
        if not await is_campus_active(db, user.campus_id):
            msg = "Campus is inactive"
            raise jwt.InvalidTokenError(msg)
        return user


async def _auto_join(conn_id: str, user: User) -> list[str]:
    """Subscribe a fresh socket to every room the user belongs to."""
    if user.campus_id is None:
        return []
    async with get_session_factory()() as db:
        rooms = await list_user_rooms(db, user.campus_id, user.id)
    for room in rooms:
        manager.join_room(conn_id, room.id)
    return [room.id for room in rooms]


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query(...),
    device_id: str | None = Query(None),
) -> None:
    """Single authenticated socket per client device."""
    try:
        user = await _authenticate(token)
    except jwt.InvalidTokenError as e:
        await websocket.close(code=4001, reason=f"Authentication failed: {e}")
        return

    conn_id = str(uuid.uuid4())
    client = await manager.connect(websocket, conn_id, user.id, user.campus_id, device_id)
    ctx = EventContext(conn_id=conn_id, user=user, client=client)

    try:
        rooms = await _auto_join(conn_id, user)
        await websocket.send_json(
            {
                "event": "connected",
                "data": {
                    "user_id": user.id,
                    "rooms": rooms,
                    "heartbeat_interval": get_settings().ws_heartbeat_interval_seconds,
                },
            }
        )
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"event": "error", "data": {"message": "Invalid JSON"}})
                continue
            if not isinstance(frame, dict):
                await websocket.send_json({"event": "error", "data": {"message": "Invalid frame"}})
                continue

            data = frame.get("data") or {}
            if not isinstance(data, dict):
                data = {}
            reply_event, reply_data = await handle_event(ctx, str(frame.get("event", "")), data)
            await websocket.send_text(json.dumps({"event": reply_event, "data": reply_data}, default=str))

    except WebSocketDisconnect:
        await manager.disconnect(conn_id)
    except Exception:
        logger.exception("ws_error", conn_id=conn_id)
        await manager.disconnect(conn_id)
