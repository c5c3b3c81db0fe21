"""In-app notifications.

A notification row is the durable copy; when a Redis client is at hand the
serialized row is also pushed to every open socket of the recipient. Types
are coarse buckets (chat, call, reminder, academic, system) with a free-form
subtype such as ``reminder_due``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select, update

from campus.db.base import utcnow
from campus.db.models import Notification
from campus.ws.publisher import publish_to_user

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

NOTIFICATION_TYPES = frozenset({"chat", "call", "reminder", "academic", "system"})


def serialize_notification(notification: Notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.type,
        "subtype": notification.subtype,
        "title": notification.title,
        "description": notification.description,
        "timestamp": notification.created_at.isoformat() if notification.created_at else None,
        "read": notification.read,
        "action_url": notification.action_url,
        "metadata": notification.notification_metadata or {},
    }


async def create_notification(
    db: AsyncSession,
    user_id: str,
    type_: str,
    subtype: str,
    title: str,
    *,
    description: str | None = None,
    campus_id: str | None = None,
    action_url: str | None = None,
    metadata: dict[str, Any] | None = None,
    redis: Redis | None = None,
) -> Notification:
    """Store a notification for ``user_id`` and push it live when possible."""
    if type_ not in NOTIFICATION_TYPES:
        msg = f"Invalid notification type: {type_}"
        raise ValueError(msg)

    notification = Notification(
        user_id=user_id,
        campus_id=campus_id,
        type=type_,
        subtype=subtype,
        title=title,
        description=description,
        action_url=action_url,
        notification_metadata=metadata or {},
        created_at=utcnow(),
    )
    db.add(notification)
    await db.flush()

    if redis is not None and not await publish_to_user(
        redis, user_id, "notification", serialize_notification(notification)
    ):
        logger.warning("notification_push_failed", notification_id=notification.id, user_id=user_id)
    return notification


def _mine(user_id: str, unread_only: bool = False) -> list[Any]:
    conditions = [Notification.user_id == user_id]
    if unread_only:
        conditions.append(Notification.read.is_(False))
    return conditions


async def get_notifications(
    db: AsyncSession,
    user_id: str,
    page: int = 1,
    per_page: int = 20,
    unread_only: bool = False,
) -> tuple[list[Notification], int]:
    """Newest first, one page at a time."""
    conditions = _mine(user_id, unread_only)
    total = (await db.execute(select(func.count()).select_from(Notification).where(*conditions))).scalar_one()
    rows = await db.execute(
        select(Notification)
        .where(*conditions)
        .order_by(Notification.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(rows.scalars().all()), total


async def get_unread_count(db: AsyncSession, user_id: str) -> int:
    return (
        await db.execute(select(func.count()).select_from(Notification).where(*_mine(user_id, unread_only=True)))
    ).scalar_one()


async def mark_as_read(db: AsyncSession, user_id: str, notification_id: str) -> bool:
    result = await db.execute(
        update(Notification).where(*_mine(user_id), Notification.id == notification_id).values(read=True)
    )
    await db.flush()
    return bool(result.rowcount)


async def mark_all_as_read(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(update(Notification).where(*_mine(user_id, unread_only=True)).values(read=True))
    await db.flush()
    return result.rowcount or 0
