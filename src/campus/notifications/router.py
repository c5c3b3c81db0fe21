"""Notification API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from campus.auth.policy import require_permission
from campus.database import get_session
from campus.db.models import User
from campus.notifications.schemas import (
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from campus.notifications.service import (
    get_notifications,
    get_unread_count,
    mark_all_as_read,
    mark_as_read,
)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])

_reader = require_permission("notification", "read")


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    user: User = Depends(_reader),
    db: AsyncSession = Depends(get_session),
):
    notifications, total = await get_notifications(db, user.id, page, per_page, unread_only)
    return NotificationListResponse(
        notifications=[
            NotificationResponse(
                id=n.id,
                type=n.type,
                subtype=n.subtype,
                title=n.title,
                description=n.description,
                timestamp=n.created_at,
                read=n.read,
                action_url=n.action_url,
                metadata=n.notification_metadata or {},
            )
            for n in notifications
        ],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_notification_count(
    user: User = Depends(_reader),
    db: AsyncSession = Depends(get_session),
):
    count = await get_unread_count(db, user.id)
    return UnreadCountResponse(unread_count=count)


@router.post("/read-all")
async def mark_all_read(
    user: User = Depends(_reader),
    db: AsyncSession = Depends(get_session),
):
    count = await mark_all_as_read(db, user.id)
    await db.commit()
    return {"detail": f"Marked {count} notifications as read", "count": count}


@router.post("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    user: User = Depends(_reader),
    db: AsyncSession = Depends(get_session),
):
    found = await mark_as_read(db, user.id, notification_id)
    if not found:
        raise HTTPException(status_code=404, detail="Notification not found")
    await db.commit()
    return {"detail": "Notification marked as read"}
