"""Sync router: /api/sync/* (device registry, chat snapshot, message delta)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from campus.auth.policy import require_permission
from campus.chat.schemas import DeviceRegisterRequest
from campus.chat.service import ROOM_ACCESS_DENIED
from campus.chat.sync import (
    SyncResult,
    deactivate_device,
    get_active_device_count,
    get_user_devices,
    register_device,
    sync_chats,
    sync_messages,
)
from campus.config import get_settings
from campus.database import get_session
from campus.db.models import User

router = APIRouter(prefix="/api/sync", tags=["Sync"])


def _unwrap(result: SyncResult) -> Any:
    if result.success:
        return result.data
    if result.error == ROOM_ACCESS_DENIED:
        raise HTTPException(status_code=403, detail=result.error)
    if result.error == "Device not found":
        raise HTTPException(status_code=404, detail=result.error)
    raise HTTPException(status_code=500, detail=result.error or "Sync failed")


@router.post("/devices", status_code=201)
async def register(
    body: DeviceRegisterRequest,
    request: Request,
    user: User = Depends(require_permission("device", "manage")),
    db: AsyncSession = Depends(get_session),
):
    attrs = body.model_dump(exclude={"device_id"})
    attrs["ip_address"] = request.client.host if request.client else None
    attrs["user_agent"] = request.headers.get("user-agent")
    result = await register_device(db, user.id, user.campus_id, body.device_id, attrs)  # type: ignore[arg-type]
    data = _unwrap(result)
    await db.commit()
    return data


@router.get("/devices")
async def devices(
    user: User = Depends(require_permission("device", "manage")),
    db: AsyncSession = Depends(get_session),
):
    return {
        "devices": _unwrap(await get_user_devices(db, user.id)),
        "active_count": await get_active_device_count(db, user.id),
    }


@router.delete("/devices/{device_id}")
async def logout_device(
    device_id: str,
    user: User = Depends(require_permission("device", "manage")),
    db: AsyncSession = Depends(get_session),
):
    data = _unwrap(await deactivate_device(db, user.id, device_id))
    await db.commit()
    return data


@router.get("/chats")
async def chats(
    device_id: str | None = Query(None),
    x_device_id: str | None = Header(None),
    user: User = Depends(require_permission("sync", "read")),
    db: AsyncSession = Depends(get_session),
):
    data = _unwrap(await sync_chats(db, user.id, user.campus_id, device_id or x_device_id))  # type: ignore[arg-type]
    await db.commit()
    return data


@router.get("/rooms/{room_id}/messages")
async def messages(
    room_id: str,
    since_timestamp: datetime | None = Query(None),
    since_sequence: int | None = Query(None, ge=0),
    limit: int | None = Query(None, ge=1),
    device_id: str | None = Query(None),
    x_device_id: str | None = Header(None),
    user: User = Depends(require_permission("sync", "read")),
    db: AsyncSession = Depends(get_session),
):
    settings = get_settings()
    page_size = min(limit or settings.sync_default_limit, settings.sync_max_limit)
    result = await sync_messages(
        db,
        user.id,
        user.campus_id,  # type: ignore[arg-type]
        room_id,
        since_timestamp=since_timestamp,
        since_sequence=since_sequence,
        limit=page_size,
        device_id=device_id or x_device_id,
    )
    data = _unwrap(result)
    await db.commit()
    return data
