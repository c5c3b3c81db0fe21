"""Worker job tests (no Redis: jobs run against the test database)."""

from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus.db.base import utcnow
from campus.db.models import Notification, Reminder
from campus.workers.settings import WorkerSettings, cleanup_reminders, send_due_reminders


def test_worker_registers_jobs() -> None:
    names = {job.__name__ for job in WorkerSettings.functions}
    assert names == {"send_due_reminders", "cleanup_reminders"}
    assert len(WorkerSettings.cron_jobs) == 2


@pytest.mark.asyncio
async def test_send_due_reminders_job(db: AsyncSession, school) -> None:
    due = utcnow() + timedelta(minutes=2)
    db.add(
        Reminder(
            campus_id=school.campus.id,
            user_id=school.teacher.id,
            title="Staff meeting",
            reminder_date=due.date(),
            reminder_time=due.strftime("%H:%M"),
            reminder_datetime=due,
            frequency="one_time",
        )
    )
    await db.commit()

    assert await send_due_reminders({}) == 1
    assert await send_due_reminders({}) == 0

    titles = (await db.execute(select(Notification.title))).scalars().all()
    assert titles == ["Staff meeting"]


@pytest.mark.asyncio
async def test_cleanup_job_with_nothing_to_do(database) -> None:
    assert await cleanup_reminders({}) == 0
