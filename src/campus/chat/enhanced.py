"""Starring, forwarding and per-message delivery info."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import delete, func, select, update

from campus.chat.service import (
    get_accessible_message,
    get_accessible_room,
    get_member_ids,
    insert_message,
    load_receipts,
    serialize_message,
    set_last_message,
)
from campus.db.models import ChatMessage, ChatRoomMember, MessageStar, User
from campus.ws.publisher import publish_to_room

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def toggle_star(db: AsyncSession, user_id: str, campus_id: str, message_id: str) -> dict[str, Any]:
    """Flip the user's star on a message: delete the star row if present, else insert it."""
    message = await get_accessible_message(db, campus_id, message_id, user_id)
    removed = await db.execute(
        delete(MessageStar).where(MessageStar.message_id == message.id, MessageStar.user_id == user_id)
    )
    is_starred = removed.rowcount == 0
    if is_starred:
        db.add(MessageStar(message_id=message.id, user_id=user_id))
    await db.flush()
    logger.info("message_star_toggled", message_id=message_id, user_id=user_id, is_starred=is_starred)
    return {"message_id": message.id, "is_starred": is_starred}


async def get_starred_messages(
    db: AsyncSession,
    user_id: str,
    campus_id: str,
    *,
    room_id: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict[str, Any]:
    """Starred messages in rooms the user still belongs to, newest first."""
    conditions = [
        MessageStar.user_id == user_id,
        ChatMessage.campus_id == campus_id,
        ChatMessage.is_deleted.is_(False),
        ChatRoomMember.user_id == user_id,
    ]
    if room_id:
        conditions.append(ChatMessage.room_id == room_id)
    base = (
        select(ChatMessage)
        .join(MessageStar, MessageStar.message_id == ChatMessage.id)
        .join(ChatRoomMember, ChatRoomMember.room_id == ChatMessage.room_id)
        .where(*conditions)
    )
    total = (await db.execute(select(func.count()).select_from(base.subquery()))).scalar_one()
    rows = await db.execute(
        base.order_by(ChatMessage.created_at.desc()).offset((page - 1) * limit).limit(limit)
    )
    return {
        "messages": [serialize_message(m) for m in rows.scalars().all()],
        "page": page,
        "limit": limit,
        "total": total,
    }


async def forward_message(
    db: AsyncSession,
    user: User,
    campus_id: str,
    message_id: str,
    target_room_ids: list[str],
    *,
    redis: Redis | None = None,
) -> dict[str, Any]:
    """Copy a message into each target room the user belongs to.

    Copies point at the root of the forward chain, and the root's
    ``forwarded_count`` grows by the number of copies actually made.
    Inaccessible targets are skipped.
    """
    original = await get_accessible_message(db, campus_id, message_id, user.id)
    root_id = original.forwarded_from or original.id
    original_sender = await db.get(User, original.sender_id)
    chain_length = ((original.meta_data or {}).get("forward_info") or {}).get("forward_chain_length", 0) + 1

    forward_meta = {
        **{k: v for k, v in (original.meta_data or {}).items() if k != "mentions"},
        "forward_info": {
            "original_sender_id": original.sender_id,
            "original_sender_name": original_sender.full_name if original_sender else "Unknown User",
            "forward_chain_length": chain_length,
        },
        "forwarded_by": user.id,
        "forwarded_by_name": user.full_name,
    }

    message_ids: list[str] = []
    for target_room_id in dict.fromkeys(target_room_ids):
        room = await get_accessible_room(db, campus_id, target_room_id, user.id)
        if room is None:
            logger.warning("forward_target_denied", user_id=user.id, room_id=target_room_id)
            continue
        copy = await insert_message(
            db,
            room,
            user.id,
            content=original.content,
            message_type=original.message_type,
            file_url=original.file_url,
            file_name=original.file_name,
            file_size=original.file_size,
            forwarded_from=root_id,
            meta_data=forward_meta,
        )
        set_last_message(room, copy, prefix="Forwarded: ")
        message_ids.append(copy.id)
        await publish_to_room(redis, room.id, "message:new", serialize_message(copy), exclude_user_id=user.id)

    if message_ids:
        await db.execute(
            update(ChatMessage)
            .where(ChatMessage.id == root_id)
            .values(forwarded_count=ChatMessage.forwarded_count + len(message_ids))
        )
    await db.flush()
    logger.info("message_forwarded", message_id=message_id, root_id=root_id, targets=len(message_ids))
    return {"forwarded_count": len(message_ids), "message_ids": message_ids}


async def get_message_info(db: AsyncSession, user_id: str, campus_id: str, message_id: str) -> dict[str, Any]:
    message = await get_accessible_message(db, campus_id, message_id, user_id)
    receipts = (await load_receipts(db, [message.id])).get(message.id, {"delivered": [], "seen": []})
    members = await get_member_ids(db, message.room_id)
    return {
        "message_id": message.id,
        "sender_id": message.sender_id,
        "created_at": message.created_at.isoformat() if message.created_at else None,
        "delivered_to": receipts["delivered"],
        "seen_by": receipts["seen"],
        "total_recipients": max(len(members) - 1, 0),
    }
