"""Reminder router: /api/reminders/*. Every reminder is private to its owner."""

from __future__ import annotations

import datetime as dt

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from campus.auth.policy import require_permission
from campus.database import get_session
from campus.db.models import User
from campus.reminders.schemas import (
    ReminderCreateRequest,
    ReminderListResponse,
    ReminderResponse,
    ReminderStatsResponse,
    ReminderUpdateRequest,
)
from campus.reminders.service import (
    create_reminder,
    delete_reminder,
    get_reminder,
    list_reminders,
    reminder_stats,
    update_reminder,
)

router = APIRouter(prefix="/api/reminders", tags=["Reminders"])

_owner = require_permission("reminder", "manage")


@router.post("", response_model=ReminderResponse, status_code=201)
async def create(
    body: ReminderCreateRequest,
    user: User = Depends(_owner),
    db: AsyncSession = Depends(get_session),
):
    reminder = await create_reminder(
        db,
        user.campus_id,  # type: ignore[arg-type]
        user.id,
        title=body.title,
        note=body.note,
        reminder_date=body.reminder_date,
        reminder_time=body.reminder_time,
        frequency=body.frequency,
    )
    await db.commit()
    return reminder


@router.get("", response_model=ReminderListResponse)
async def list_all(
    is_active: bool | None = Query(None),
    frequency: str | None = Query(None, pattern=r"^(one_time|daily|weekly)$"),
    start_date: dt.date | None = Query(None),
    end_date: dt.date | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(_owner),
    db: AsyncSession = Depends(get_session),
):
    reminders, total = await list_reminders(
        db,
        user.id,
        is_active=is_active,
        frequency=frequency,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return ReminderListResponse(
        reminders=[ReminderResponse.model_validate(r) for r in reminders],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/stats", response_model=ReminderStatsResponse)
async def stats(user: User = Depends(_owner), db: AsyncSession = Depends(get_session)):
    return await reminder_stats(db, user.id)


@router.get("/{reminder_id}", response_model=ReminderResponse)
async def get_one(reminder_id: str, user: User = Depends(_owner), db: AsyncSession = Depends(get_session)):
    return await get_reminder(db, user.id, reminder_id)


@router.patch("/{reminder_id}", response_model=ReminderResponse)
async def update(
    reminder_id: str,
    body: ReminderUpdateRequest,
    user: User = Depends(_owner),
    db: AsyncSession = Depends(get_session),
):
    reminder = await update_reminder(db, user.id, reminder_id, body.model_dump(exclude_unset=True))
    await db.commit()
    return reminder


@router.delete("/{reminder_id}", status_code=204)
async def delete(reminder_id: str, user: User = Depends(_owner), db: AsyncSession = Depends(get_session)):
    await delete_reminder(db, user.id, reminder_id)
    await db.commit()
