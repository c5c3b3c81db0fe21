"""Super-admin operations: campus onboarding, lifecycle and platform analytics."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import Select, case, func, select

from campus.auth.password import hash_password, validate_password_strength
from campus.auth.policy import ADMIN, STUDENT, TEACHER
from campus.auth.service import get_user_by_email
from campus.db.models import (
    Attendance,
    Campus,
    ChatMessage,
    Class,
    Course,
    CourseEnrollment,
    User,
    UserDevice,
)
from campus.exceptions import ConflictError, NotFoundError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

HEALTH_WINDOW_DAYS = 30


# ---------------------------------------------------------------------------
# Campus lifecycle
# ---------------------------------------------------------------------------


async def onboard_campus(
    db: AsyncSession,
    *,
    name: str,
    code: str,
    contact_email: str | None,
    phone: str | None,
    address: str | None,
    admin_email: str,
    admin_password: str,
    admin_first_name: str,
    admin_last_name: str,
) -> tuple[Campus, User]:
    """
    Create a campus together with its first Admin account.

    Raises:
        ConflictError: If the campus code or admin email already exists.
        PasswordStrengthError: If the admin password is too weak.
    """
    validate_password_strength(admin_password)
    code = code.strip().upper()

    existing = await db.execute(select(Campus.id).where(Campus.code == code))
    if existing.scalar_one_or_none() is not None:
        msg = f"Campus code '{code}' already exists"
        raise ConflictError(msg)
    if await get_user_by_email(db, admin_email) is not None:
        msg = "Email already registered"
        raise ConflictError(msg)

    campus = Campus(name=name, code=code, contact_email=contact_email, phone=phone, address=address)
    db.add(campus)
    await db.flush()

    admin = User(
        campus_id=campus.id,
        user_type=ADMIN,
        email=admin_email.lower().strip(),
        password_hash=hash_password(admin_password),
        first_name=admin_first_name,
        last_name=admin_last_name,
    )
    db.add(admin)
    await db.flush()

    logger.info("campus_onboarded", campus_id=campus.id, code=code, admin_id=admin.id)
    return campus, admin


async def get_campus(db: AsyncSession, campus_id: str) -> Campus:
    campus = await db.get(Campus, campus_id)
    if campus is None:
        msg = "Campus not found"
        raise NotFoundError(msg)
    return campus


async def list_campuses(
    db: AsyncSession,
    *,
    is_active: bool | None = None,
    search: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Campus], int]:
    conditions = []
    if is_active is not None:
        conditions.append(Campus.is_active.is_(is_active))
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(func.lower(Campus.name).like(pattern) | func.lower(Campus.code).like(pattern))

    total = (await db.execute(select(func.count()).select_from(Campus).where(*conditions))).scalar_one()
    result = await db.execute(
        select(Campus)
        .where(*conditions)
        .order_by(Campus.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def update_campus(db: AsyncSession, campus_id: str, changes: dict[str, Any]) -> Campus:
    campus = await get_campus(db, campus_id)
    for field, value in changes.items():
        setattr(campus, field, value)
    await db.flush()
    logger.info("campus_updated", campus_id=campus_id, fields=sorted(changes))
    return campus


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


async def _grouped(db: AsyncSession, stmt: Select) -> dict[Any, int]:  # type: ignore[type-arg]
    """Run a ``SELECT key, count`` statement into a dict."""
    result = await db.execute(stmt)
    return {key: int(count) for key, count in result.all()}


async def _count(db: AsyncSession, stmt: Select) -> int:  # type: ignore[type-arg]
    return int((await db.execute(stmt)).scalar_one())


async def platform_analytics(db: AsyncSession) -> dict[str, Any]:
    """Platform-wide totals plus a per-campus breakdown."""
    live_users = (User.is_deleted.is_(False), User.campus_id.is_not(None))

    users_by_type = await _grouped(
        db, select(User.user_type, func.count()).where(*live_users).group_by(User.user_type)
    )
    users_per_campus = await _grouped(
        db, select(User.campus_id, func.count()).where(*live_users).group_by(User.campus_id)
    )
    courses_per_campus = await _grouped(
        db, select(Course.campus_id, func.count()).group_by(Course.campus_id)
    )
    classes_per_campus = await _grouped(
        db, select(Class.campus_id, func.count()).where(Class.is_deleted.is_(False)).group_by(Class.campus_id)
    )

    campuses = (await db.execute(select(Campus).order_by(Campus.name))).scalars().all()

    return {
        "campuses": {
            "total": len(campuses),
            "active": sum(1 for c in campuses if c.is_active),
        },
        "users_by_type": users_by_type,
        "total_users": sum(users_by_type.values()),
        "total_classes": await _count(db, select(func.count()).select_from(Class).where(Class.is_deleted.is_(False))),
        "total_courses": await _count(db, select(func.count()).select_from(Course)),
        "total_enrollments": await _count(db, select(func.count()).select_from(CourseEnrollment)),
        "active_devices": await _count(
            db, select(func.count()).select_from(UserDevice).where(UserDevice.is_active.is_(True))
        ),
        "total_messages": await _count(
            db, select(func.count()).select_from(ChatMessage).where(ChatMessage.is_deleted.is_(False))
        ),
        "per_campus": [
            {
                "campus_id": c.id,
                "name": c.name,
                "code": c.code,
                "is_active": c.is_active,
                "users": users_per_campus.get(c.id, 0),
                "classes": classes_per_campus.get(c.id, 0),
                "courses": courses_per_campus.get(c.id, 0),
            }
            for c in campuses
        ],
    }


def _health_status(score: float) -> str:
    if score >= 80:
        return "healthy"
    if score >= 60:
        return "attention"
    return "critical"


async def school_health(db: AsyncSession, today: date | None = None) -> list[dict[str, Any]]:
    """Per-campus health over the last 30 days, best first.

    ``activity_score`` is the mean of the attendance rate and the course
    completion rate (both percentages).
    """
    today = today or datetime.now(timezone.utc).date()
    since = today - timedelta(days=HEALTH_WINDOW_DAYS)

    staff_counts = await db.execute(
        select(
            User.campus_id,
            func.sum(case((User.user_type == STUDENT, 1), else_=0)),
            func.sum(case((User.user_type == TEACHER, 1), else_=0)),
        )
        .where(User.is_deleted.is_(False), User.campus_id.is_not(None))
        .group_by(User.campus_id)
    )
    people = {cid: (int(s or 0), int(t or 0)) for cid, s, t in staff_counts.all()}

    attendance_rows = await db.execute(
        select(
            Attendance.campus_id,
            func.count(),
            func.sum(case((Attendance.status.in_(("present", "late")), 1), else_=0)),
        )
        .where(Attendance.date >= since, Attendance.date <= today)
        .group_by(Attendance.campus_id)
    )
    attendance = {cid: (int(total), int(present or 0)) for cid, total, present in attendance_rows.all()}

    enrollment_rows = await db.execute(
        select(
            CourseEnrollment.campus_id,
            func.count(),
            func.sum(case((CourseEnrollment.enrollment_status == "completed", 1), else_=0)),
        ).group_by(CourseEnrollment.campus_id)
    )
    enrollments = {cid: (int(total), int(done or 0)) for cid, total, done in enrollment_rows.all()}

    campuses = (await db.execute(select(Campus).where(Campus.is_active.is_(True)))).scalars().all()
    report = []
    for campus in campuses:
        students, teachers = people.get(campus.id, (0, 0))
        att_total, att_present = attendance.get(campus.id, (0, 0))
        enr_total, enr_done = enrollments.get(campus.id, (0, 0))
        attendance_rate = round(att_present / att_total * 100, 2) if att_total else 0.0
        completion_rate = round(enr_done / enr_total * 100, 2) if enr_total else 0.0
        score = round((attendance_rate + completion_rate) / 2, 2)
        report.append(
            {
                "campus_id": campus.id,
                "name": campus.name,
                "students": students,
                "teachers": teachers,
                "attendance_rate": attendance_rate,
                "course_completion_rate": completion_rate,
                "activity_score": score,
                "status": _health_status(score),
            }
        )
    report.sort(key=lambda r: r["activity_score"], reverse=True)
    return report
