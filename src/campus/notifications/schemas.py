"""Pydantic schemas for notification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: str
    type: str
    subtype: str
    title: str
    description: str | None = None
    timestamp: datetime
    read: bool
    action_url: str | None = None
    metadata: dict[str, Any] = {}


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    page: int
    per_page: int


class UnreadCountResponse(BaseModel):
    unread_count: int
