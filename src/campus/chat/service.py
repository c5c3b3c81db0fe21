"""Chat rooms, membership and messages.

Sequence numbers are allocated with a single ``UPDATE ... RETURNING`` on the
room row, so concurrent senders never share or skip a number. Receipts are
rows in ``message_receipts``; resending a message with the same
``client_message_id`` returns the stored message instead of a duplicate.
"""

from __future__ import annotations

import re
from collections import defaultdict
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import delete, func, select, update

from campus.auth.policy import ADMIN
from campus.classes.service import get_class
from campus.config import get_settings
from campus.db.base import utcnow
from campus.db.models import ChatMessage, ChatRoom, ChatRoomMember, ClassMember, MessageReceipt, User
from campus.exceptions import AccessDeniedError, NotFoundError
from campus.users.service import get_campus_users_by_ids
from campus.ws.publisher import publish_to_room, publish_to_user

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

ROOM_TYPES = ("personal", "class_group", "subject_group", "custom_group")
MESSAGE_TYPES = ("text", "image", "video", "audio", "file", "document")
MENTION_PATTERN = re.compile(r"@(\w+)")
ROOM_ACCESS_DENIED = "Access denied to this room"


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def serialize_room(room: ChatRoom, member_ids: list[str] | None = None, unread_count: int | None = None) -> dict:
    data: dict[str, Any] = {
        "id": room.id,
        "campus_id": room.campus_id,
        "name": room.name,
        "description": room.description,
        "room_type": room.room_type,
        "class_id": room.class_id,
        "created_by": room.created_by,
        "is_active": room.is_active,
        "last_sequence": room.last_sequence,
        "last_message": (room.meta_data or {}).get("last_message"),
        "meta_data": room.meta_data or {},
        "created_at": room.created_at.isoformat() if room.created_at else None,
        "updated_at": room.updated_at.isoformat() if room.updated_at else None,
    }
    if member_ids is not None:
        data["members"] = member_ids
    if unread_count is not None:
        data["unread_count"] = unread_count
    return data


def serialize_message(message: ChatMessage, receipts: dict[str, list[dict]] | None = None) -> dict:
    data: dict[str, Any] = {
        "id": message.id,
        "room_id": message.room_id,
        "sender_id": message.sender_id,
        "message_type": message.message_type,
        "content": "" if message.is_deleted else message.content,
        "file_url": message.file_url,
        "file_name": message.file_name,
        "file_size": message.file_size,
        "sequence_number": message.sequence_number,
        "client_message_id": message.client_message_id,
        "reply_to": message.reply_to,
        "forwarded_from": message.forwarded_from,
        "forwarded_count": message.forwarded_count,
        "is_edited": message.is_edited,
        "edited_at": message.edited_at.isoformat() if message.edited_at else None,
        "is_deleted": message.is_deleted,
        "meta_data": message.meta_data or {},
        "created_at": message.created_at.isoformat() if message.created_at else None,
    }
    if receipts is not None:
        data["delivered_to"] = receipts.get("delivered", [])
        data["seen_by"] = receipts.get("seen", [])
    return data


async def load_receipts(db: AsyncSession, message_ids: list[str]) -> dict[str, dict[str, list[dict]]]:
    """Receipts for many messages in one query: ``{message_id: {kind: [{user_id, at}]}}``."""
    grouped: dict[str, dict[str, list[dict]]] = defaultdict(lambda: {"delivered": [], "seen": []})
    if not message_ids:
        return grouped
    rows = await db.execute(
        select(MessageReceipt).where(MessageReceipt.message_id.in_(message_ids)).order_by(MessageReceipt.at)
    )
    for receipt in rows.scalars().all():
        grouped[receipt.message_id][receipt.kind].append(
            {"user_id": receipt.user_id, "at": receipt.at.isoformat() if receipt.at else None}
        )
    return grouped


# ---------------------------------------------------------------------------
# Rooms & membership
# ---------------------------------------------------------------------------


async def get_room(db: AsyncSession, campus_id: str, room_id: str) -> ChatRoom:
    room = (
        await db.execute(
            select(ChatRoom).where(
                ChatRoom.id == room_id,
                ChatRoom.campus_id == campus_id,
                ChatRoom.is_deleted.is_(False),
                ChatRoom.is_active.is_(True),
            )
        )
    ).scalar_one_or_none()
    if room is None:
        msg = "Chat room not found"
        raise NotFoundError(msg)
    return room


async def get_member_ids(db: AsyncSession, room_id: str) -> list[str]:
    rows = await db.execute(
        select(ChatRoomMember.user_id).where(ChatRoomMember.room_id == room_id).order_by(ChatRoomMember.joined_at)
    )
    return list(rows.scalars().all())


async def get_membership(db: AsyncSession, room_id: str, user_id: str) -> ChatRoomMember | None:
    return await db.get(ChatRoomMember, (room_id, user_id))


async def get_accessible_room(db: AsyncSession, campus_id: str, room_id: str, user_id: str) -> ChatRoom | None:
    """The room if it is live, in the campus and contains the user; otherwise None."""
    room = (
        await db.execute(
            select(ChatRoom)
            .join(ChatRoomMember, ChatRoomMember.room_id == ChatRoom.id)
            .where(
                ChatRoom.id == room_id,
                ChatRoom.campus_id == campus_id,
                ChatRoom.is_deleted.is_(False),
                ChatRoom.is_active.is_(True),
                ChatRoomMember.user_id == user_id,
            )
        )
    ).scalar_one_or_none()
    return room


async def require_room_access(db: AsyncSession, campus_id: str, room_id: str, user_id: str) -> ChatRoom:
    room = await get_accessible_room(db, campus_id, room_id, user_id)
    if room is None:
        raise AccessDeniedError(ROOM_ACCESS_DENIED)
    return room


async def _find_personal_room(db: AsyncSession, campus_id: str, a: str, b: str) -> ChatRoom | None:
    pair = (
        select(ChatRoomMember.room_id)
        .where(ChatRoomMember.user_id.in_([a, b]))
        .group_by(ChatRoomMember.room_id)
        .having(func.count() == 2)
    )
    rows = await db.execute(
        select(ChatRoom).where(
            ChatRoom.id.in_(pair),
            ChatRoom.campus_id == campus_id,
            ChatRoom.room_type == "personal",
            ChatRoom.is_deleted.is_(False),
        )
    )
    return rows.scalars().first()


async def create_room(
    db: AsyncSession,
    campus_id: str,
    creator: User,
    *,
    name: str,
    room_type: str = "custom_group",
    description: str | None = None,
    class_id: str | None = None,
    member_ids: list[str] | None = None,
) -> tuple[ChatRoom, bool]:
    """Create a room with the creator as admin member.

    Personal rooms are unique per pair of users; asking for one that exists
    returns it. Class group rooms pull in the class roster. Returns
    ``(room, created)``.
    """
    if room_type not in ROOM_TYPES:
        msg = f"Invalid room_type: {room_type}"
        raise ValueError(msg)

    requested = [uid for uid in dict.fromkeys(member_ids or []) if uid != creator.id]
    found = await get_campus_users_by_ids(db, campus_id, requested)
    missing = [uid for uid in requested if uid not in found]
    if missing:
        msg = f"Unknown members: {', '.join(missing)}"
        raise ValueError(msg)

    if room_type == "personal":
        if len(requested) != 1:
            msg = "A personal room needs exactly one other member"
            raise ValueError(msg)
        existing = await _find_personal_room(db, campus_id, creator.id, requested[0])
        if existing is not None:
            return existing, False

    if class_id is not None:
        await get_class(db, campus_id, class_id)
        if room_type == "class_group":
            roster = await db.execute(select(ClassMember.user_id).where(ClassMember.class_id == class_id))
            requested.extend(uid for uid in roster.scalars().all() if uid != creator.id and uid not in requested)

    room = ChatRoom(
        campus_id=campus_id,
        name=name,
        description=description,
        room_type=room_type,
        class_id=class_id,
        created_by=creator.id,
        meta_data={},
    )
    db.add(room)
    await db.flush()
    db.add(ChatRoomMember(room_id=room.id, user_id=creator.id, is_admin=True))
    for uid in requested:
        db.add(ChatRoomMember(room_id=room.id, user_id=uid, is_admin=False))
    await db.flush()
    logger.info("chat_room_created", room_id=room.id, room_type=room_type, members=len(requested) + 1)
    return room, True


async def list_user_rooms(db: AsyncSession, campus_id: str, user_id: str) -> list[ChatRoom]:
    rows = await db.execute(
        select(ChatRoom)
        .join(ChatRoomMember, ChatRoomMember.room_id == ChatRoom.id)
        .where(
            ChatRoomMember.user_id == user_id,
            ChatRoom.campus_id == campus_id,
            ChatRoom.is_deleted.is_(False),
            ChatRoom.is_active.is_(True),
        )
        .order_by(ChatRoom.updated_at.desc())
    )
    return list(rows.scalars().all())


async def _require_room_admin(db: AsyncSession, room: ChatRoom, actor: User) -> None:
    if actor.user_type == ADMIN:
        return
    membership = await get_membership(db, room.id, actor.id)
    if membership is None or not membership.is_admin:
        msg = "Only room admins can manage members"
        raise AccessDeniedError(msg)


async def add_members(
    db: AsyncSession, campus_id: str, room_id: str, actor: User, user_ids: list[str]
) -> list[str]:
    room = await get_room(db, campus_id, room_id)
    if room.room_type == "personal":
        msg = "Members cannot be added to a personal room"
        raise ValueError(msg)
    await _require_room_admin(db, room, actor)

    found = await get_campus_users_by_ids(db, campus_id, user_ids)
    current = set(await get_member_ids(db, room_id))
    added = [uid for uid in dict.fromkeys(user_ids) if uid in found and uid not in current]
    for uid in added:
        db.add(ChatRoomMember(room_id=room_id, user_id=uid))
    await db.flush()
    logger.info("chat_members_added", room_id=room_id, added=len(added))
    return added


async def remove_member(db: AsyncSession, campus_id: str, room_id: str, actor: User, user_id: str) -> None:
    """Room admins and campus admins remove anyone; everyone else may only leave."""
    room = await get_room(db, campus_id, room_id)
    if user_id != actor.id:
        await _require_room_admin(db, room, actor)
    result = await db.execute(
        delete(ChatRoomMember).where(ChatRoomMember.room_id == room_id, ChatRoomMember.user_id == user_id)
    )
    if result.rowcount == 0:
        msg = "User is not a member of this room"
        raise NotFoundError(msg)
    await db.flush()


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


async def next_sequence(db: AsyncSession, room_id: str) -> int:
    """Atomically claim the room's next sequence number."""
    result = await db.execute(
        update(ChatRoom)
        .where(ChatRoom.id == room_id)
        .values(last_sequence=ChatRoom.last_sequence + 1)
        .returning(ChatRoom.last_sequence)
    )
    return int(result.scalar_one())


def extract_mentions(content: str, member_ids: list[str]) -> list[str]:
    members = set(member_ids)
    return [token for token in dict.fromkeys(MENTION_PATTERN.findall(content or "")) if token in members]


def _preview(message: ChatMessage, prefix: str = "") -> dict:
    text = message.content if message.message_type == "text" else f"[{message.message_type}]"
    return {
        "message_id": message.id,
        "sender_id": message.sender_id,
        "content": f"{prefix}{text}"[:200],
        "message_type": message.message_type,
        "created_at": message.created_at.isoformat() if message.created_at else None,
    }


def set_last_message(room: ChatRoom, message: ChatMessage, prefix: str = "") -> None:
    # JSON columns are not mutation-tracked; assign a new dict.
    room.meta_data = {**(room.meta_data or {}), "last_message": _preview(message, prefix)}
    room.updated_at = utcnow()


async def insert_message(
    db: AsyncSession,
    room: ChatRoom,
    sender_id: str,
    *,
    content: str,
    message_type: str = "text",
    file_url: str | None = None,
    file_name: str | None = None,
    file_size: int | None = None,
    client_message_id: str | None = None,
    reply_to: str | None = None,
    forwarded_from: str | None = None,
    meta_data: dict[str, Any] | None = None,
) -> ChatMessage:
    sequence = await next_sequence(db, room.id)
    message = ChatMessage(
        campus_id=room.campus_id,
        room_id=room.id,
        sender_id=sender_id,
        message_type=message_type,
        content=content,
        file_url=file_url,
        file_name=file_name,
        file_size=file_size,
        sequence_number=sequence,
        client_message_id=client_message_id,
        reply_to=reply_to,
        forwarded_from=forwarded_from,
        meta_data=meta_data or {},
        created_at=utcnow(),
    )
    db.add(message)
    await db.flush()
    return message


async def send_message(
    db: AsyncSession,
    campus_id: str,
    sender: User,
    room_id: str,
    *,
    content: str = "",
    message_type: str = "text",
    file_url: str | None = None,
    file_name: str | None = None,
    file_size: int | None = None,
    client_message_id: str | None = None,
    reply_to: str | None = None,
    meta_data: dict[str, Any] | None = None,
    redis: Redis | None = None,
) -> tuple[ChatMessage, bool]:
    """Append a message to a room. Returns ``(message, created)``."""
    if message_type not in MESSAGE_TYPES:
        msg = f"Invalid message_type: {message_type}"
        raise ValueError(msg)
    if message_type == "text" and not content.strip():
        msg = "Message content cannot be empty"
        raise ValueError(msg)
    if message_type != "text" and not file_url:
        msg = "file_url is required for media messages"
        raise ValueError(msg)

    room = await require_room_access(db, campus_id, room_id, sender.id)

    if client_message_id:
        existing = (
            await db.execute(
                select(ChatMessage).where(
                    ChatMessage.room_id == room_id,
                    ChatMessage.sender_id == sender.id,
                    ChatMessage.client_message_id == client_message_id,
                )
            )
        ).scalar_one_or_none()
        if existing is not None:
            return existing, False

    if reply_to is not None:
        parent = await db.get(ChatMessage, reply_to)
        if parent is None or parent.room_id != room_id:
            msg = "reply_to must reference a message in the same room"
            raise ValueError(msg)

    member_ids = await get_member_ids(db, room_id)
    mentions = extract_mentions(content, member_ids)
    extra = dict(meta_data or {})
    if mentions:
        extra["mentions"] = mentions

    message = await insert_message(
        db,
        room,
        sender.id,
        content=content,
        message_type=message_type,
        file_url=file_url,
        file_name=file_name,
        file_size=file_size,
        client_message_id=client_message_id,
        reply_to=reply_to,
        meta_data=extra,
    )
    set_last_message(room, message)
    await db.flush()
    logger.info("message_sent", room_id=room_id, message_id=message.id, seq=message.sequence_number)

    payload = serialize_message(message)
    await publish_to_room(redis, room_id, "message:new", payload, exclude_user_id=sender.id)
    for user_id in mentions:
        if user_id != sender.id:
            await publish_to_user(
                redis,
                user_id,
                "mention",
                {"room_id": room_id, "message": payload, "mentioned_by": sender.id},
            )
    return message, True


async def get_messages(
    db: AsyncSession,
    campus_id: str,
    user_id: str,
    room_id: str,
    *,
    before_sequence: int | None = None,
    limit: int = 50,
) -> tuple[list[ChatMessage], bool]:
    """Page backwards through history. Returns messages oldest-first and ``has_more``."""
    await require_room_access(db, campus_id, room_id, user_id)
    query = select(ChatMessage).where(ChatMessage.room_id == room_id, ChatMessage.is_deleted.is_(False))
    if before_sequence is not None:
        query = query.where(ChatMessage.sequence_number < before_sequence)
    rows = await db.execute(query.order_by(ChatMessage.sequence_number.desc()).limit(limit + 1))
    messages = list(rows.scalars().all())
    has_more = len(messages) > limit
    return list(reversed(messages[:limit])), has_more


async def _add_receipts(db: AsyncSession, message_ids: list[str], user_id: str, kind: str) -> list[str]:
    if not message_ids:
        return []
    already = set(
        (
            await db.execute(
                select(MessageReceipt.message_id).where(
                    MessageReceipt.message_id.in_(message_ids),
                    MessageReceipt.user_id == user_id,
                    MessageReceipt.kind == kind,
                )
            )
        )
        .scalars()
        .all()
    )
    fresh = [mid for mid in message_ids if mid not in already]
    now = utcnow()
    for mid in fresh:
        db.add(MessageReceipt(message_id=mid, user_id=user_id, kind=kind, at=now))
    await db.flush()
    return fresh


async def mark_seen(
    db: AsyncSession,
    campus_id: str,
    user_id: str,
    room_id: str,
    *,
    up_to_sequence: int | None = None,
    redis: Redis | None = None,
) -> int:
    """Record ``seen`` receipts for other people's messages up to a sequence number."""
    await require_room_access(db, campus_id, room_id, user_id)
    query = select(ChatMessage.id).where(
        ChatMessage.room_id == room_id,
        ChatMessage.sender_id != user_id,
        ChatMessage.is_deleted.is_(False),
    )
    if up_to_sequence is not None:
        query = query.where(ChatMessage.sequence_number <= up_to_sequence)
    message_ids = list((await db.execute(query)).scalars().all())
    fresh = await _add_receipts(db, message_ids, user_id, "seen")
    if fresh:
        await publish_to_room(
            redis,
            room_id,
            "messages:seen",
            {"room_id": room_id, "user_id": user_id, "message_ids": fresh, "up_to_sequence": up_to_sequence},
            exclude_user_id=user_id,
        )
    return len(fresh)


async def _get_message(db: AsyncSession, campus_id: str, message_id: str) -> ChatMessage:
    message = (
        await db.execute(
            select(ChatMessage).where(
                ChatMessage.id == message_id,
                ChatMessage.campus_id == campus_id,
                ChatMessage.is_deleted.is_(False),
            )
        )
    ).scalar_one_or_none()
    if message is None:
        msg = "Message not found"
        raise NotFoundError(msg)
    return message


async def get_accessible_message(db: AsyncSession, campus_id: str, message_id: str, user_id: str) -> ChatMessage:
    message = await _get_message(db, campus_id, message_id)
    await require_room_access(db, campus_id, message.room_id, user_id)
    return message


async def mark_delivered(db: AsyncSession, campus_id: str, user_id: str, message_id: str) -> bool:
    message = await get_accessible_message(db, campus_id, message_id, user_id)
    if message.sender_id == user_id:
        return False
    return bool(await _add_receipts(db, [message.id], user_id, "delivered"))


async def edit_message(
    db: AsyncSession,
    campus_id: str,
    user_id: str,
    message_id: str,
    content: str,
    *,
    now: datetime | None = None,
    redis: Redis | None = None,
) -> ChatMessage:
    message = await get_accessible_message(db, campus_id, message_id, user_id)
    if message.sender_id != user_id:
        msg = "Only the sender can edit a message"
        raise AccessDeniedError(msg)
    if message.message_type != "text":
        msg = "Only text messages can be edited"
        raise ValueError(msg)
    if not content.strip():
        msg = "Message content cannot be empty"
        raise ValueError(msg)
    now = now or utcnow()
    window = timedelta(hours=get_settings().chat_edit_window_hours)
    if now - message.created_at > window:
        msg = "Message can no longer be edited"
        raise ValueError(msg)

    message.content = content
    message.is_edited = True
    message.edited_at = now
    message.meta_data = {
        **(message.meta_data or {}),
        "mentions": extract_mentions(content, await get_member_ids(db, message.room_id)),
    }
    await db.flush()
    await publish_to_room(redis, message.room_id, "message:edited", serialize_message(message))
    return message


async def delete_message(
    db: AsyncSession, campus_id: str, user_id: str, message_id: str, *, redis: Redis | None = None
) -> None:
    message = await get_accessible_message(db, campus_id, message_id, user_id)
    if message.sender_id != user_id:
        msg = "Only the sender can delete a message"
        raise AccessDeniedError(msg)
    message.is_deleted = True
    message.deleted_at = utcnow()
    await db.flush()
    logger.info("message_deleted", message_id=message_id, room_id=message.room_id)
    await publish_to_room(
        redis, message.room_id, "message:deleted", {"room_id": message.room_id, "message_id": message_id}
    )
