"""Personal reminders: CRUD, stats and the due-reminder scheduler."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import and_, case, func, select, update

from campus.config import get_settings
from campus.db.base import utcnow
from campus.db.models import Reminder
from campus.exceptions import NotFoundError
from campus.notifications.service import create_notification

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

FREQUENCIES = ("one_time", "daily", "weekly")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_STEP = {"daily": timedelta(days=1), "weekly": timedelta(days=7)}


def combine(reminder_date: date, reminder_time: str) -> datetime:
    """``HH:mm`` (24h) on ``reminder_date``, as an aware UTC datetime."""
    match = TIME_PATTERN.match(reminder_time)
    if match is None:
        msg = "reminder_time must be HH:mm in 24-hour format"
        raise ValueError(msg)
    return datetime.combine(reminder_date, time(int(match[1]), int(match[2])), tzinfo=timezone.utc)


async def get_reminder(db: AsyncSession, user_id: str, reminder_id: str) -> Reminder:
    """Owner-only lookup; other users' reminders read as missing."""
    reminder = (
        await db.execute(select(Reminder).where(Reminder.id == reminder_id, Reminder.user_id == user_id))
    ).scalar_one_or_none()
    if reminder is None:
        msg = "Reminder not found"
        raise NotFoundError(msg)
    return reminder


async def create_reminder(
    db: AsyncSession,
    campus_id: str,
    user_id: str,
    *,
    title: str,
    reminder_date: date,
    reminder_time: str,
    frequency: str = "one_time",
    note: str | None = None,
    now: datetime | None = None,
) -> Reminder:
    if frequency not in FREQUENCIES:
        msg = f"Invalid frequency: {frequency}"
        raise ValueError(msg)
    when = combine(reminder_date, reminder_time)
    if when <= (now or utcnow()):
        msg = "Reminder must be scheduled in the future"
        raise ValueError(msg)

    reminder = Reminder(
        campus_id=campus_id,
        user_id=user_id,
        title=title,
        note=note,
        reminder_date=reminder_date,
        reminder_time=reminder_time,
        reminder_datetime=when,
        frequency=frequency,
    )
    db.add(reminder)
    await db.flush()
    logger.info("reminder_created", reminder_id=reminder.id, user_id=user_id, at=when.isoformat())
    return reminder


async def list_reminders(
    db: AsyncSession,
    user_id: str,
    *,
    is_active: bool | None = None,
    frequency: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Reminder], int]:
    conditions = [Reminder.user_id == user_id]
    if is_active is not None:
        conditions.append(Reminder.is_active.is_(is_active))
    if frequency:
        conditions.append(Reminder.frequency == frequency)
    if start_date:
        conditions.append(Reminder.reminder_date >= start_date)
    if end_date:
        conditions.append(Reminder.reminder_date <= end_date)

    total = (await db.execute(select(func.count()).select_from(Reminder).where(*conditions))).scalar_one()
    rows = await db.execute(
        select(Reminder)
        .where(*conditions)
        .order_by(Reminder.reminder_datetime)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(rows.scalars().all()), total


async def update_reminder(
    db: AsyncSession,
    user_id: str,
    reminder_id: str,
    changes: dict[str, Any],
    *,
    now: datetime | None = None,
) -> Reminder:
    reminder = await get_reminder(db, user_id, reminder_id)
    if "frequency" in changes and changes["frequency"] not in FREQUENCIES:
        msg = f"Invalid frequency: {changes['frequency']}"
        raise ValueError(msg)

    reschedule = "reminder_date" in changes or "reminder_time" in changes
    for field, value in changes.items():
        setattr(reminder, field, value)
    if reschedule:
        when = combine(reminder.reminder_date, reminder.reminder_time)
        if when <= (now or utcnow()):
            msg = "Reminder must be scheduled in the future"
            raise ValueError(msg)
        reminder.reminder_datetime = when
        reminder.is_sent = False
        reminder.sent_at = None
    await db.flush()
    return reminder


async def delete_reminder(db: AsyncSession, user_id: str, reminder_id: str) -> None:
    reminder = await get_reminder(db, user_id, reminder_id)
    await db.delete(reminder)
    await db.flush()


async def reminder_stats(db: AsyncSession, user_id: str) -> dict[str, Any]:
    def _sum(*conditions: Any) -> Any:
        return func.coalesce(func.sum(case((and_(*conditions), 1), else_=0)), 0)

    row = (
        await db.execute(
            select(
                func.count(),
                _sum(Reminder.is_active.is_(True)),
                _sum(Reminder.is_active.is_(True), Reminder.is_sent.is_(False)),
                _sum(Reminder.is_sent.is_(True)),
            ).where(Reminder.user_id == user_id)
        )
    ).one()
    by_frequency = {f: 0 for f in FREQUENCIES}
    rows = await db.execute(
        select(Reminder.frequency, func.count()).where(Reminder.user_id == user_id).group_by(Reminder.frequency)
    )
    for frequency, count in rows.all():
        by_frequency[frequency] = int(count)
    return {
        "total": int(row[0]),
        "active": int(row[1]),
        "pending": int(row[2]),
        "completed": int(row[3]),
        "by_frequency": by_frequency,
    }


# ---------------------------------------------------------------------------
# Scheduler (run by the arq worker)
# ---------------------------------------------------------------------------


async def process_pending_reminders(
    db: AsyncSession, *, now: datetime | None = None, redis: Redis | None = None
) -> int:
    """Notify owners of reminders due within the lookahead window.

    One-time reminders are marked sent; recurring ones move forward by
    their period and stay pending.
    """
    now = now or utcnow()
    horizon = now + timedelta(minutes=get_settings().reminder_lookahead_minutes)
    rows = await db.execute(
        select(Reminder).where(
            Reminder.is_active.is_(True),
            Reminder.is_sent.is_(False),
            Reminder.reminder_datetime >= now,
            Reminder.reminder_datetime <= horizon,
        )
    )
    processed = 0
    for reminder in rows.scalars().all():
        await create_notification(
            db,
            reminder.user_id,
            "reminder",
            "reminder_due",
            reminder.title,
            description=reminder.note,
            campus_id=reminder.campus_id,
            metadata={"reminder_id": reminder.id, "reminder_datetime": reminder.reminder_datetime.isoformat()},
            redis=redis,
        )
        reminder.sent_at = now
        step = _STEP.get(reminder.frequency)
        if step is None:
            reminder.is_sent = True
        else:
            reminder.reminder_datetime = reminder.reminder_datetime + step
            reminder.reminder_date = reminder.reminder_datetime.date()
        processed += 1
    await db.flush()
    if processed:
        logger.info("reminders_processed", count=processed)
    return processed


async def cleanup_old_reminders(db: AsyncSession, *, now: datetime | None = None) -> int:
    """Deactivate one-time reminders delivered longer ago than the retention window."""
    cutoff = (now or utcnow()) - timedelta(days=get_settings().reminder_retention_days)
    result = await db.execute(
        update(Reminder)
        .where(
            Reminder.frequency == "one_time",
            Reminder.is_sent.is_(True),
            Reminder.is_active.is_(True),
            Reminder.sent_at < cutoff,
        )
        .values(is_active=False)
    )
    await db.flush()
    count = result.rowcount or 0
    if count:
        logger.info("reminders_cleaned_up", count=count)
    return count
