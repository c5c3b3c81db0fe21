"""Courses, enrollments and watch-history driven progress."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import case, distinct, func, or_, select, update

from campus.auth.policy import STUDENT
from campus.db.base import utcnow
from campus.db.models import Course, CourseEnrollment, CourseProgress, CourseWatchHistory, User
from campus.exceptions import ConflictError, NotFoundError
from campus.users.service import get_campus_user

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

PUBLISHED = "published"


# ---------------------------------------------------------------------------
# Courses
# ---------------------------------------------------------------------------


async def get_course(db: AsyncSession, campus_id: str, course_id: str, viewer: User | None = None) -> Course:
    """Fetch a course in the campus. Students only ever see published courses."""
    course = (
        await db.execute(select(Course).where(Course.id == course_id, Course.campus_id == campus_id))
    ).scalar_one_or_none()
    if course is None or (viewer is not None and viewer.user_type == STUDENT and course.status != PUBLISHED):
        msg = "Course not found"
        raise NotFoundError(msg)
    return course


async def create_course(db: AsyncSession, campus_id: str, created_by: str, **fields: Any) -> Course:
    code = fields["course_code"].strip()
    clash = await db.execute(select(Course.id).where(Course.campus_id == campus_id, Course.course_code == code))
    if clash.scalar_one_or_none() is not None:
        msg = f"Course code '{code}' already exists"
        raise ConflictError(msg)

    fields["course_code"] = code
    fields["meta_data"] = fields.get("meta_data") or {}
    course = Course(campus_id=campus_id, created_by=created_by, **fields)
    db.add(course)
    await db.flush()
    logger.info("course_created", course_id=course.id, campus_id=campus_id, code=code)
    return course


async def list_courses(
    db: AsyncSession,
    campus_id: str,
    viewer: User,
    *,
    status: str | None = None,
    category: str | None = None,
    class_id: str | None = None,
    search: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Course], int]:
    conditions = [Course.campus_id == campus_id]
    if viewer.user_type == STUDENT:
        conditions.append(Course.status == PUBLISHED)
    elif status:
        conditions.append(Course.status == status)
    if category:
        conditions.append(Course.category == category)
    if class_id:
        conditions.append(Course.class_id == class_id)
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(Course.course_name.ilike(pattern), Course.course_code.ilike(pattern)))

    total = (await db.execute(select(func.count()).select_from(Course).where(*conditions))).scalar_one()
    rows = await db.execute(
        select(Course)
        .where(*conditions)
        .order_by(Course.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(rows.scalars().all()), total


async def update_course(db: AsyncSession, campus_id: str, course_id: str, changes: dict[str, Any]) -> Course:
    course = await get_course(db, campus_id, course_id)
    if "course_code" in changes and changes["course_code"] != course.course_code:
        code = changes["course_code"].strip()
        clash = await db.execute(
            select(Course.id).where(Course.campus_id == campus_id, Course.course_code == code, Course.id != course_id)
        )
        if clash.scalar_one_or_none() is not None:
            msg = f"Course code '{code}' already exists"
            raise ConflictError(msg)
        changes["course_code"] = code
    for field, value in changes.items():
        setattr(course, field, value)
    await db.flush()
    return course


async def delete_course(db: AsyncSession, campus_id: str, course_id: str) -> None:
    course = await get_course(db, campus_id, course_id)
    await db.delete(course)
    await db.flush()
    logger.info("course_deleted", course_id=course_id, campus_id=campus_id)


# ---------------------------------------------------------------------------
# Enrollments
# ---------------------------------------------------------------------------


async def enroll(
    db: AsyncSession,
    campus_id: str,
    course_id: str,
    actor: User,
    student_id: str | None = None,
) -> CourseEnrollment:
    """Enroll ``actor`` (students) or the named student (staff).

    A second enrollment of the same learner is a conflict rather than a no-op.
    """
    course = await get_course(db, campus_id, course_id, viewer=actor)

    if actor.user_type == STUDENT or student_id is None:
        learner_id, enrollment_type = actor.id, "self"
    else:
        learner = await get_campus_user(db, campus_id, student_id)
        if learner.user_type != STUDENT:
            msg = "Only students can be enrolled in courses"
            raise ValueError(msg)
        learner_id, enrollment_type = learner.id, "assigned"

    existing = await db.execute(
        select(CourseEnrollment.id).where(
            CourseEnrollment.course_id == course_id, CourseEnrollment.user_id == learner_id
        )
    )
    if existing.scalar_one_or_none() is not None:
        msg = "Already enrolled in this course"
        raise ConflictError(msg)
    if course.max_enrollments is not None and course.enrollment_count >= course.max_enrollments:
        msg = "Course has reached its enrollment limit"
        raise ConflictError(msg)

    enrollment = CourseEnrollment(
        campus_id=campus_id,
        course_id=course_id,
        user_id=learner_id,
        enrollment_type=enrollment_type,
        enrolled_by=actor.id,
    )
    db.add(enrollment)
    await db.execute(
        update(Course).where(Course.id == course_id).values(enrollment_count=Course.enrollment_count + 1)
    )
    await db.flush()
    await db.refresh(course)
    logger.info("course_enrolled", course_id=course_id, user_id=learner_id, by=actor.id)
    return enrollment


async def list_enrollments(
    db: AsyncSession, campus_id: str, course_id: str, *, status: str | None = None
) -> list[tuple[CourseEnrollment, User]]:
    await get_course(db, campus_id, course_id)
    query = (
        select(CourseEnrollment, User)
        .join(User, User.id == CourseEnrollment.user_id)
        .where(CourseEnrollment.course_id == course_id)
        .order_by(CourseEnrollment.enrollment_date.desc())
    )
    if status:
        query = query.where(CourseEnrollment.enrollment_status == status)
    return [(e, u) for e, u in (await db.execute(query)).all()]


async def my_enrollments(db: AsyncSession, campus_id: str, user_id: str) -> list[tuple[CourseEnrollment, Course]]:
    rows = await db.execute(
        select(CourseEnrollment, Course)
        .join(Course, Course.id == CourseEnrollment.course_id)
        .where(CourseEnrollment.user_id == user_id, CourseEnrollment.campus_id == campus_id)
        .order_by(CourseEnrollment.enrollment_date.desc())
    )
    return [(e, c) for e, c in rows.all()]


async def update_enrollment(
    db: AsyncSession, campus_id: str, course_id: str, enrollment_id: str, status: str
) -> CourseEnrollment:
    enrollment = (
        await db.execute(
            select(CourseEnrollment).where(
                CourseEnrollment.id == enrollment_id,
                CourseEnrollment.course_id == course_id,
                CourseEnrollment.campus_id == campus_id,
            )
        )
    ).scalar_one_or_none()
    if enrollment is None:
        msg = "Enrollment not found"
        raise NotFoundError(msg)
    enrollment.enrollment_status = status
    if status == "completed":
        await _mark_completed(db, enrollment)
    await db.flush()
    return enrollment


async def _mark_completed(db: AsyncSession, enrollment: CourseEnrollment) -> None:
    """Flag the enrollment completed; the course counter moves only on the first completion."""
    enrollment.enrollment_status = "completed"
    if enrollment.completion_date is not None:
        return
    enrollment.completion_date = utcnow()
    await db.execute(
        update(Course)
        .where(Course.id == enrollment.course_id)
        .values(completion_count=Course.completion_count + 1)
    )
    logger.info("course_completed", course_id=enrollment.course_id, user_id=enrollment.user_id)


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


async def _get_enrollment(db: AsyncSession, course_id: str, user_id: str) -> CourseEnrollment:
    enrollment = (
        await db.execute(
            select(CourseEnrollment).where(
                CourseEnrollment.course_id == course_id, CourseEnrollment.user_id == user_id
            )
        )
    ).scalar_one_or_none()
    if enrollment is None:
        msg = "Not enrolled in this course"
        raise NotFoundError(msg)
    return enrollment


async def recompute_progress(db: AsyncSession, course: Course, user_id: str) -> CourseProgress:
    """Rebuild the learner's progress row from their whole watch history."""
    totals = (
        await db.execute(
            select(
                func.coalesce(func.sum(CourseWatchHistory.watch_duration), 0),
                func.count(
                    distinct(case((CourseWatchHistory.is_completed.is_(True), CourseWatchHistory.content_id)))
                ),
            ).where(CourseWatchHistory.course_id == course.id, CourseWatchHistory.user_id == user_id)
        )
    ).one()
    total_watch_time, chapters_completed = int(totals[0]), int(totals[1])
    percentage = 0.0
    if course.total_chapters > 0:
        percentage = min(100.0, round(chapters_completed / course.total_chapters * 100, 2))

    progress = (
        await db.execute(
            select(CourseProgress).where(CourseProgress.course_id == course.id, CourseProgress.user_id == user_id)
        )
    ).scalar_one_or_none()
    if progress is None:
        progress = CourseProgress(campus_id=course.campus_id, course_id=course.id, user_id=user_id)
        db.add(progress)
    progress.total_watch_time = total_watch_time
    progress.chapters_completed = chapters_completed
    progress.completion_percentage = percentage
    progress.is_completed = percentage >= 100.0

    enrollment = await _get_enrollment(db, course.id, user_id)
    enrollment.progress_percentage = percentage
    enrollment.last_accessed_at = utcnow()
    if progress.is_completed and enrollment.enrollment_status != "completed":
        await _mark_completed(db, enrollment)
    await db.flush()
    return progress


async def record_watch_history(
    db: AsyncSession,
    campus_id: str,
    course_id: str,
    user: User,
    *,
    content_id: str,
    watch_duration: int,
    last_position: int = 0,
    is_completed: bool = False,
) -> CourseProgress:
    course = await get_course(db, campus_id, course_id, viewer=user)
    await _get_enrollment(db, course_id, user.id)

    db.add(
        CourseWatchHistory(
            campus_id=campus_id,
            course_id=course_id,
            user_id=user.id,
            content_id=content_id,
            watch_duration=watch_duration,
            last_position=last_position,
            is_completed=is_completed,
        )
    )
    await db.flush()
    progress = await recompute_progress(db, course, user.id)
    progress.last_content_id = content_id
    await db.flush()
    return progress


async def get_progress(db: AsyncSession, campus_id: str, course_id: str, user_id: str) -> CourseProgress:
    await get_course(db, campus_id, course_id)
    progress = (
        await db.execute(
            select(CourseProgress).where(
                CourseProgress.course_id == course_id,
                CourseProgress.user_id == user_id,
                CourseProgress.campus_id == campus_id,
            )
        )
    ).scalar_one_or_none()
    if progress is None:
        await _get_enrollment(db, course_id, user_id)
        return CourseProgress(
            campus_id=campus_id,
            course_id=course_id,
            user_id=user_id,
            total_watch_time=0,
            chapters_completed=0,
            completion_percentage=0.0,
            is_completed=False,
        )
    return progress
