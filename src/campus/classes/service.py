"""Class management: CRUD plus student/teacher rosters."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import delete, func, select

from campus.auth.policy import STUDENT, TEACHER
from campus.db.models import Class, ClassMember, User
from campus.exceptions import NotFoundError
from campus.users.service import get_campus_users_by_ids

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def get_class(db: AsyncSession, campus_id: str, class_id: str) -> Class:
    result = await db.execute(
        select(Class).where(Class.id == class_id, Class.campus_id == campus_id, Class.is_deleted.is_(False))
    )
    klass = result.scalar_one_or_none()
    if klass is None:
        msg = "Class not found"
        raise NotFoundError(msg)
    return klass


async def _validate_teacher(db: AsyncSession, campus_id: str, teacher_id: str | None) -> None:
    if teacher_id is None:
        return
    found = await get_campus_users_by_ids(db, campus_id, [teacher_id])
    if teacher_id not in found or found[teacher_id].user_type != TEACHER:
        msg = "class_teacher_id must reference a teacher of this campus"
        raise ValueError(msg)


async def create_class(
    db: AsyncSession,
    campus_id: str,
    *,
    name: str,
    academic_year: str | None = None,
    class_teacher_id: str | None = None,
    meta_data: dict[str, Any] | None = None,
) -> Class:
    await _validate_teacher(db, campus_id, class_teacher_id)
    klass = Class(
        campus_id=campus_id,
        name=name,
        academic_year=academic_year,
        class_teacher_id=class_teacher_id,
        meta_data=meta_data or {},
    )
    db.add(klass)
    await db.flush()
    if class_teacher_id:
        db.add(ClassMember(class_id=klass.id, user_id=class_teacher_id, role="teacher"))
        await db.flush()
    logger.info("class_created", class_id=klass.id, campus_id=campus_id)
    return klass


async def list_classes(
    db: AsyncSession,
    campus_id: str,
    *,
    academic_year: str | None = None,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[tuple[Class, int]], int]:
    """Classes with their student counts, one aggregate query for the counts."""
    conditions = [Class.campus_id == campus_id, Class.is_deleted.is_(False)]
    if academic_year:
        conditions.append(Class.academic_year == academic_year)

    total = (await db.execute(select(func.count()).select_from(Class).where(*conditions))).scalar_one()
    classes = list(
        (
            await db.execute(
                select(Class).where(*conditions).order_by(Class.name).offset((page - 1) * per_page).limit(per_page)
            )
        )
        .scalars()
        .all()
    )
    counts: dict[str, int] = {}
    if classes:
        rows = await db.execute(
            select(ClassMember.class_id, func.count())
            .where(ClassMember.class_id.in_([c.id for c in classes]), ClassMember.role == "student")
            .group_by(ClassMember.class_id)
        )
        counts = {cid: int(n) for cid, n in rows.all()}
    return [(c, counts.get(c.id, 0)) for c in classes], total


async def get_roster(db: AsyncSession, class_id: str) -> dict[str, list[User]]:
    result = await db.execute(
        select(User, ClassMember.role)
        .join(ClassMember, ClassMember.user_id == User.id)
        .where(ClassMember.class_id == class_id, User.is_deleted.is_(False))
        .order_by(User.first_name, User.last_name)
    )
    roster: dict[str, list[User]] = {"teachers": [], "students": []}
    for user, role in result.all():
        roster["teachers" if role == "teacher" else "students"].append(user)
    return roster


async def update_class(db: AsyncSession, campus_id: str, class_id: str, changes: dict[str, Any]) -> Class:
    klass = await get_class(db, campus_id, class_id)
    if "class_teacher_id" in changes:
        await _validate_teacher(db, campus_id, changes["class_teacher_id"])
    for field, value in changes.items():
        setattr(klass, field, value)
    await db.flush()
    if changes.get("class_teacher_id"):
        existing = await db.get(ClassMember, (class_id, changes["class_teacher_id"]))
        if existing is None:
            db.add(ClassMember(class_id=class_id, user_id=changes["class_teacher_id"], role="teacher"))
            await db.flush()
    return klass


async def delete_class(db: AsyncSession, campus_id: str, class_id: str) -> None:
    klass = await get_class(db, campus_id, class_id)
    klass.is_deleted = True
    klass.is_active = False
    await db.flush()
    logger.info("class_deleted", class_id=class_id, campus_id=campus_id)


async def add_students(db: AsyncSession, campus_id: str, class_id: str, student_ids: list[str]) -> dict[str, Any]:
    """Attach students to a class. Non-students and unknown ids are reported, not fatal."""
    await get_class(db, campus_id, class_id)
    users = await get_campus_users_by_ids(db, campus_id, student_ids)
    existing = set(
        (
            await db.execute(
                select(ClassMember.user_id).where(
                    ClassMember.class_id == class_id, ClassMember.user_id.in_(student_ids)
                )
            )
        )
        .scalars()
        .all()
    )

    added: list[str] = []
    failed: list[dict[str, str]] = []
    for student_id in dict.fromkeys(student_ids):
        user = users.get(student_id)
        if user is None:
            failed.append({"user_id": student_id, "error": "User not found"})
        elif user.user_type != STUDENT:
            failed.append({"user_id": student_id, "error": "User is not a student"})
        elif student_id in existing:
            failed.append({"user_id": student_id, "error": "Already in class"})
        else:
            db.add(ClassMember(class_id=class_id, user_id=student_id, role="student"))
            user.class_id = class_id
            added.append(student_id)
    await db.flush()
    logger.info("class_students_added", class_id=class_id, added=len(added), failed=len(failed))
    return {"added": added, "failed": failed}


async def remove_student(db: AsyncSession, campus_id: str, class_id: str, student_id: str) -> None:
    await get_class(db, campus_id, class_id)
    result = await db.execute(
        delete(ClassMember).where(
            ClassMember.class_id == class_id,
            ClassMember.user_id == student_id,
            ClassMember.role == "student",
        )
    )
    if result.rowcount == 0:
        msg = "Student is not in this class"
        raise NotFoundError(msg)
    user = await db.get(User, student_id)
    if user is not None and user.class_id == class_id:
        user.class_id = None
    await db.flush()


async def list_students(db: AsyncSession, campus_id: str, class_id: str) -> list[User]:
    await get_class(db, campus_id, class_id)
    return (await get_roster(db, class_id))["students"]


async def get_class_student_ids(db: AsyncSession, class_id: str) -> list[str]:
    result = await db.execute(
        select(ClassMember.user_id).where(ClassMember.class_id == class_id, ClassMember.role == "student")
    )
    return list(result.scalars().all())
