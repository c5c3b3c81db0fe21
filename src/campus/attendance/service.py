"""Attendance marking and class attendance reports."""

from __future__ import annotations

from collections import Counter
from datetime import date, timedelta
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select

from campus.classes.service import get_class, get_class_student_ids
from campus.db.models import Attendance
from campus.exceptions import NotFoundError
from campus.users.service import get_campus_users_by_ids

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

STATUSES = ("present", "absent", "late", "leave")
REPORT_DEFAULT_DAYS = 30


def attendance_band(percentage: float) -> str:
    if percentage >= 90:
        return "excellent"
    if percentage >= 75:
        return "good"
    if percentage >= 60:
        return "average"
    return "poor"


async def _upsert(
    db: AsyncSession,
    campus_id: str,
    *,
    user_id: str,
    class_id: str | None,
    day: date,
    status: str,
    user_type: str,
    remarks: str | None,
    marked_by: str,
) -> Attendance:
    query = select(Attendance).where(
        Attendance.campus_id == campus_id,
        Attendance.user_id == user_id,
        Attendance.date == day,
    )
    query = query.where(Attendance.class_id.is_(None) if class_id is None else Attendance.class_id == class_id)
    record = (await db.execute(query)).scalar_one_or_none()
    if record is None:
        record = Attendance(campus_id=campus_id, user_id=user_id, class_id=class_id, date=day)
        db.add(record)
    record.status = status
    record.user_type = user_type
    record.remarks = remarks
    record.marked_by = marked_by
    return record


async def mark_attendance(
    db: AsyncSession,
    campus_id: str,
    marked_by: str,
    entries: list[dict[str, Any]],
    *,
    class_id: str | None,
    day: date,
) -> dict[str, Any]:
    """Upsert one record per entry. Unknown users are reported in ``errors``.

    Each entry carries ``user_id``, ``status`` and optional ``remarks``.
    """
    if class_id is not None:
        await get_class(db, campus_id, class_id)
    users = await get_campus_users_by_ids(db, campus_id, [e["user_id"] for e in entries])

    records: list[Attendance] = []
    errors: list[dict[str, str]] = []
    for entry in entries:
        user = users.get(entry["user_id"])
        if user is None:
            errors.append({"user_id": entry["user_id"], "error": "User not found"})
            continue
        if user.user_type not in ("Student", "Teacher"):
            errors.append({"user_id": user.id, "error": "Attendance is tracked for students and teachers only"})
            continue
        records.append(
            await _upsert(
                db,
                campus_id,
                user_id=user.id,
                class_id=class_id,
                day=day,
                status=entry["status"],
                user_type=user.user_type,
                remarks=entry.get("remarks"),
                marked_by=marked_by,
            )
        )
    await db.flush()
    logger.info(
        "attendance_marked",
        campus_id=campus_id,
        class_id=class_id,
        date=day.isoformat(),
        marked=len(records),
        failed=len(errors),
    )
    return {
        "records": records,
        "errors": errors,
        "total_processed": len(entries),
        "successful_count": len(records),
        "error_count": len(errors),
    }


async def update_attendance(
    db: AsyncSession, campus_id: str, attendance_id: str, changes: dict[str, Any], marked_by: str
) -> Attendance:
    record = (
        await db.execute(
            select(Attendance).where(Attendance.id == attendance_id, Attendance.campus_id == campus_id)
        )
    ).scalar_one_or_none()
    if record is None:
        msg = "Attendance record not found"
        raise NotFoundError(msg)
    for field, value in changes.items():
        setattr(record, field, value)
    record.marked_by = marked_by
    await db.flush()
    return record


async def list_attendance(
    db: AsyncSession,
    campus_id: str,
    *,
    user_id: str | None = None,
    class_id: str | None = None,
    day: date | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    status: str | None = None,
) -> list[Attendance]:
    query = select(Attendance).where(Attendance.campus_id == campus_id)
    if user_id:
        query = query.where(Attendance.user_id == user_id)
    if class_id:
        query = query.where(Attendance.class_id == class_id)
    if day:
        query = query.where(Attendance.date == day)
    if start_date:
        query = query.where(Attendance.date >= start_date)
    if end_date:
        query = query.where(Attendance.date <= end_date)
    if status:
        query = query.where(Attendance.status == status)
    rows = await db.execute(query.order_by(Attendance.date.desc(), Attendance.user_id))
    return list(rows.scalars().all())


async def class_report(
    db: AsyncSession,
    campus_id: str,
    class_id: str,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict[str, Any]:
    """Per-student attendance over a date range, best attendance first.

    The percentage is days present over calendar days in the range.
    """
    klass = await get_class(db, campus_id, class_id)
    end_date = end_date or date.today()
    start_date = start_date or end_date - timedelta(days=REPORT_DEFAULT_DAYS)
    if start_date > end_date:
        msg = "start_date must not be after end_date"
        raise ValueError(msg)
    total_days = (end_date - start_date).days + 1

    student_ids = await get_class_student_ids(db, class_id)
    students = await get_campus_users_by_ids(db, campus_id, student_ids)
    rows = await db.execute(
        select(Attendance.user_id, Attendance.status, Attendance.date).where(
            Attendance.campus_id == campus_id,
            Attendance.user_id.in_(student_ids),
            Attendance.date >= start_date,
            Attendance.date <= end_date,
        )
    )
    counts: dict[str, Counter[str]] = {sid: Counter() for sid in student_ids}
    last_seen: dict[str, date] = {}
    for user_id, status, day in rows.all():
        counts[user_id][status] += 1
        if user_id not in last_seen or day > last_seen[user_id]:
            last_seen[user_id] = day

    report = []
    for sid in student_ids:
        student = students.get(sid)
        if student is None:
            continue
        tally = counts[sid]
        percentage = round(tally["present"] / total_days * 100)
        report.append(
            {
                "student_id": sid,
                "student_name": student.full_name,
                "total_days": total_days,
                "present": tally["present"],
                "absent": tally["absent"],
                "late": tally["late"],
                "leave": tally["leave"],
                "percentage": percentage,
                "band": attendance_band(percentage),
                "last_attendance_date": last_seen.get(sid),
            }
        )
    report.sort(key=lambda r: r["percentage"], reverse=True)

    bands = Counter(r["band"] for r in report)
    average = round(sum(r["percentage"] for r in report) / len(report)) if report else 0
    return {
        "class_id": klass.id,
        "class_name": klass.name,
        "start_date": start_date,
        "end_date": end_date,
        "summary": {
            "total_students": len(report),
            "average_attendance": average,
            "excellent": bands["excellent"],
            "good": bands["good"],
            "average": bands["average"],
            "poor": bands["poor"],
        },
        "students": report,
    }
