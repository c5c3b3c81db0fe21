"""Multi-device sync: device registry, chat snapshot and message delta.

Every operation returns a :class:`SyncResult` instead of raising, so the
HTTP and socket adapters can map failures onto their own error surfaces.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from campus.chat.service import ROOM_ACCESS_DENIED, get_accessible_room, serialize_message, serialize_room
from campus.db.base import utcnow
from campus.db.models import ChatMessage, ChatRoom, ChatRoomMember, MessageReceipt, UserDevice

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

DEVICE_ATTRIBUTES = ("device_name", "device_type", "platform", "app_version", "ip_address", "user_agent")


@dataclass
class SyncResult:
    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any = None) -> SyncResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> SyncResult:
        return cls(success=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = self.data
        if self.error is not None:
            out["error"] = self.error
        return out


def serialize_device(device: UserDevice) -> dict:
    return {
        "id": device.id,
        "device_id": device.device_id,
        "device_name": device.device_name,
        "device_type": device.device_type,
        "platform": device.platform,
        "app_version": device.app_version,
        "push_token": device.push_token,
        "is_active": device.is_active,
        "last_active_at": device.last_active_at.isoformat() if device.last_active_at else None,
        "last_sync_at": device.last_sync_at.isoformat() if device.last_sync_at else None,
        "last_message_seq": device.last_message_seq,
        "created_at": device.created_at.isoformat() if device.created_at else None,
    }


async def _get_device(db: AsyncSession, user_id: str, device_id: str) -> UserDevice | None:
    result = await db.execute(
        select(UserDevice).where(UserDevice.user_id == user_id, UserDevice.device_id == device_id)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Device registry
# ---------------------------------------------------------------------------


async def register_device(
    db: AsyncSession, user_id: str, campus_id: str, device_id: str, attrs: dict[str, Any]
) -> SyncResult:
    """Upsert the (user, device) row. A missing push token keeps the stored one."""
    try:
        device = await _get_device(db, user_id, device_id)
        now = utcnow()
        if device is None:
            device = UserDevice(user_id=user_id, campus_id=campus_id, device_id=device_id, created_at=now)
            db.add(device)
        for name in DEVICE_ATTRIBUTES:
            if name in attrs:
                setattr(device, name, attrs[name])
        if attrs.get("push_token"):
            device.push_token = attrs["push_token"]
        device.is_active = True
        device.last_active_at = now
        await db.flush()
    except SQLAlchemyError as exc:
        logger.error("device_register_failed", user_id=user_id, device_id=device_id, error=str(exc))
        return SyncResult.fail(str(exc))

    logger.info("device_registered", user_id=user_id, device_id=device_id, platform=device.platform)
    return SyncResult.ok(serialize_device(device))


async def get_user_devices(db: AsyncSession, user_id: str) -> SyncResult:
    try:
        rows = await db.execute(
            select(UserDevice).where(UserDevice.user_id == user_id).order_by(UserDevice.last_active_at.desc())
        )
    except SQLAlchemyError as exc:
        return SyncResult.fail(str(exc))
    return SyncResult.ok([serialize_device(d) for d in rows.scalars().all()])


async def deactivate_device(db: AsyncSession, user_id: str, device_id: str) -> SyncResult:
    try:
        device = await _get_device(db, user_id, device_id)
        if device is None:
            return SyncResult.fail("Device not found")
        device.is_active = False
        await db.flush()
    except SQLAlchemyError as exc:
        return SyncResult.fail(str(exc))
    logger.info("device_deactivated", user_id=user_id, device_id=device_id)
    return SyncResult.ok({"device_id": device_id, "is_active": False})


async def update_device_activity(db: AsyncSession, user_id: str, device_id: str) -> None:
    """Heartbeat. Failures are logged and dropped."""
    try:
        device = await _get_device(db, user_id, device_id)
        if device is not None:
            device.last_active_at = utcnow()
            await db.flush()
    except SQLAlchemyError:
        logger.warning("device_activity_update_failed", user_id=user_id, device_id=device_id, exc_info=True)


async def get_active_device_count(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(UserDevice)
        .where(UserDevice.user_id == user_id, UserDevice.is_active.is_(True))
    )
    return int(result.scalar_one())


# ---------------------------------------------------------------------------
# Snapshot & delta
# ---------------------------------------------------------------------------


async def unread_counts(db: AsyncSession, user_id: str, room_ids: list[str]) -> dict[str, int]:
    """Unread messages per room in one grouped query.

    A message is unread when someone else sent it, it is not deleted, and the
    user has no ``seen`` receipt for it.
    """
    if not room_ids:
        return {}
    seen = (
        select(MessageReceipt.message_id)
        .where(
            MessageReceipt.message_id == ChatMessage.id,
            MessageReceipt.user_id == user_id,
            MessageReceipt.kind == "seen",
        )
        .exists()
    )
    rows = await db.execute(
        select(ChatMessage.room_id, func.count())
        .where(
            ChatMessage.room_id.in_(room_ids),
            ChatMessage.is_deleted.is_(False),
            ChatMessage.sender_id != user_id,
            ~seen,
        )
        .group_by(ChatMessage.room_id)
    )
    return {room_id: int(count) for room_id, count in rows.all()}


async def sync_chats(db: AsyncSession, user_id: str, campus_id: str, device_id: str | None = None) -> SyncResult:
    """Every live room of the user with its unread count."""
    try:
        rows = await db.execute(
            select(ChatRoom)
            .join(ChatRoomMember, ChatRoomMember.room_id == ChatRoom.id)
            .where(
                ChatRoomMember.user_id == user_id,
                ChatRoom.campus_id == campus_id,
                ChatRoom.is_active.is_(True),
                ChatRoom.is_deleted.is_(False),
            )
            .order_by(ChatRoom.updated_at.desc())
        )
        rooms = list(rows.scalars().all())
        counts = await unread_counts(db, user_id, [r.id for r in rooms])

        now = utcnow()
        if device_id:
            device = await _get_device(db, user_id, device_id)
            if device is not None:
                device.last_sync_at = now
                device.last_active_at = now
                await db.flush()
    except SQLAlchemyError as exc:
        logger.error("chat_sync_failed", user_id=user_id, error=str(exc))
        return SyncResult.fail(str(exc))

    logger.info("chats_synced", user_id=user_id, device_id=device_id, rooms=len(rooms))
    return SyncResult.ok(
        {
            "rooms": [serialize_room(r, unread_count=counts.get(r.id, 0)) for r in rooms],
            "last_sync_timestamp": now.isoformat(),
        }
    )


async def sync_messages(
    db: AsyncSession,
    user_id: str,
    campus_id: str,
    room_id: str,
    *,
    since_timestamp: datetime | None = None,
    since_sequence: int | None = None,
    limit: int = 100,
    device_id: str | None = None,
) -> SyncResult:
    """Messages of a room strictly after the client's watermark(s).

    When both watermarks are given both bounds apply. Ordering is
    ``created_at`` then ``sequence_number``; one extra row is fetched to
    compute ``has_more``.
    """
    try:
        room = await get_accessible_room(db, campus_id, room_id, user_id)
        if room is None:
            return SyncResult.fail(ROOM_ACCESS_DENIED)

        query = select(ChatMessage).where(ChatMessage.room_id == room_id, ChatMessage.is_deleted.is_(False))
        if since_timestamp is not None:
            query = query.where(ChatMessage.created_at > since_timestamp)
        if since_sequence is not None:
            query = query.where(ChatMessage.sequence_number > since_sequence)
        rows = await db.execute(
            query.order_by(ChatMessage.created_at, ChatMessage.sequence_number).limit(limit + 1)
        )
        messages = list(rows.scalars().all())
        has_more = len(messages) > limit
        messages = messages[:limit]
        last_sequence = messages[-1].sequence_number if messages else None

        if device_id and last_sequence is not None:
            device = await _get_device(db, user_id, device_id)
            if device is not None and (device.last_message_seq or 0) < last_sequence:
                device.last_message_seq = last_sequence
                device.last_sync_at = utcnow()
                await db.flush()
    except SQLAlchemyError as exc:
        logger.error("message_sync_failed", user_id=user_id, room_id=room_id, error=str(exc))
        return SyncResult.fail(str(exc))

    return SyncResult.ok(
        {
            "messages": [serialize_message(m) for m in messages],
            "has_more": has_more,
            "last_sequence": last_sequence,
        }
    )
