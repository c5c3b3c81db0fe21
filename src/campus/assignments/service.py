"""Assignments and student submissions."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select

from campus.auth.policy import STUDENT
from campus.classes.service import get_class
from campus.db.base import utcnow
from campus.db.models import Assignment, AssignmentSubmission, ClassMember, User
from campus.exceptions import AccessDeniedError, ConflictError, NotFoundError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def get_assignment(db: AsyncSession, campus_id: str, assignment_id: str) -> Assignment:
    assignment = (
        await db.execute(
            select(Assignment).where(
                Assignment.id == assignment_id,
                Assignment.campus_id == campus_id,
                Assignment.is_deleted.is_(False),
            )
        )
    ).scalar_one_or_none()
    if assignment is None:
        msg = "Assignment not found"
        raise NotFoundError(msg)
    return assignment


async def _student_class_ids(db: AsyncSession, student: User) -> set[str]:
    rows = await db.execute(select(ClassMember.class_id).where(ClassMember.user_id == student.id))
    ids = set(rows.scalars().all())
    if student.class_id:
        ids.add(student.class_id)
    return ids


async def create_assignment(db: AsyncSession, campus_id: str, created_by: str, **fields: Any) -> Assignment:
    await get_class(db, campus_id, fields["class_id"])
    assignment = Assignment(campus_id=campus_id, created_by=created_by, **fields)
    db.add(assignment)
    await db.flush()
    logger.info("assignment_created", assignment_id=assignment.id, class_id=assignment.class_id)
    return assignment


async def list_assignments(
    db: AsyncSession,
    campus_id: str,
    viewer: User,
    *,
    class_id: str | None = None,
    subject: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Assignment], int]:
    """Students only see assignments of the classes they belong to."""
    conditions = [Assignment.campus_id == campus_id, Assignment.is_deleted.is_(False)]
    if class_id:
        conditions.append(Assignment.class_id == class_id)
    if subject:
        conditions.append(Assignment.subject == subject)
    if viewer.user_type == STUDENT:
        class_ids = await _student_class_ids(db, viewer)
        if not class_ids:
            return [], 0
        conditions.append(Assignment.class_id.in_(class_ids))

    total = (await db.execute(select(func.count()).select_from(Assignment).where(*conditions))).scalar_one()
    rows = await db.execute(
        select(Assignment)
        .where(*conditions)
        .order_by(Assignment.due_date.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(rows.scalars().all()), total


async def update_assignment(
    db: AsyncSession, campus_id: str, assignment_id: str, changes: dict[str, Any]
) -> Assignment:
    assignment = await get_assignment(db, campus_id, assignment_id)
    if "class_id" in changes:
        await get_class(db, campus_id, changes["class_id"])
    for field, value in changes.items():
        setattr(assignment, field, value)
    await db.flush()
    return assignment


async def delete_assignment(db: AsyncSession, campus_id: str, assignment_id: str) -> None:
    assignment = await get_assignment(db, campus_id, assignment_id)
    assignment.is_deleted = True
    await db.flush()
    logger.info("assignment_deleted", assignment_id=assignment_id)


async def submit(
    db: AsyncSession,
    campus_id: str,
    assignment_id: str,
    student: User,
    *,
    content: str | None,
    attachments: list[str],
    now: datetime | None = None,
) -> AssignmentSubmission:
    assignment = await get_assignment(db, campus_id, assignment_id)
    if assignment.class_id not in await _student_class_ids(db, student):
        msg = "You are not in the class this assignment belongs to"
        raise AccessDeniedError(msg)

    existing = await db.execute(
        select(AssignmentSubmission.id).where(
            AssignmentSubmission.assignment_id == assignment_id,
            AssignmentSubmission.student_id == student.id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        msg = "Assignment already submitted"
        raise ConflictError(msg)

    now = now or utcnow()
    is_late = now > assignment.due_date
    submission = AssignmentSubmission(
        campus_id=campus_id,
        assignment_id=assignment_id,
        student_id=student.id,
        content=content,
        attachments=attachments,
        status="late" if is_late else "submitted",
        is_late=is_late,
        submitted_at=now,
    )
    db.add(submission)
    await db.flush()
    logger.info("assignment_submitted", assignment_id=assignment_id, student_id=student.id, late=is_late)
    return submission


async def list_submissions(
    db: AsyncSession, campus_id: str, assignment_id: str
) -> list[tuple[AssignmentSubmission, User]]:
    await get_assignment(db, campus_id, assignment_id)
    rows = await db.execute(
        select(AssignmentSubmission, User)
        .join(User, User.id == AssignmentSubmission.student_id)
        .where(AssignmentSubmission.assignment_id == assignment_id)
        .order_by(AssignmentSubmission.submitted_at)
    )
    return [(s, u) for s, u in rows.all()]


async def grade_submission(
    db: AsyncSession,
    campus_id: str,
    submission_id: str,
    grader_id: str,
    *,
    grade: float,
    feedback: str | None = None,
) -> AssignmentSubmission:
    submission = (
        await db.execute(
            select(AssignmentSubmission).where(
                AssignmentSubmission.id == submission_id, AssignmentSubmission.campus_id == campus_id
            )
        )
    ).scalar_one_or_none()
    if submission is None:
        msg = "Submission not found"
        raise NotFoundError(msg)
    assignment = await get_assignment(db, campus_id, submission.assignment_id)
    if grade > assignment.max_score:
        msg = f"Grade cannot exceed max score {assignment.max_score:g}"
        raise ValueError(msg)

    submission.grade = grade
    submission.feedback = feedback
    submission.graded_by = grader_id
    submission.graded_at = utcnow()
    submission.status = "graded"
    await db.flush()
    logger.info("submission_graded", submission_id=submission_id, grade=grade)
    return submission
