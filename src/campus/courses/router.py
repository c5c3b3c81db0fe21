"""Course router: /api/course/*."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from campus.auth.policy import STUDENT, require_permission
from campus.courses.schemas import (
    CourseCreateRequest,
    CourseListResponse,
    CourseResponse,
    CourseUpdateRequest,
    EnrollmentResponse,
    EnrollmentUpdateRequest,
    EnrollmentWithCourse,
    EnrollmentWithStudent,
    EnrollRequest,
    ProgressResponse,
    WatchHistoryRequest,
)
from campus.courses.service import (
    create_course,
    delete_course,
    enroll,
    get_course,
    get_progress,
    list_courses,
    list_enrollments,
    my_enrollments,
    record_watch_history,
    update_course,
    update_enrollment,
)
from campus.database import get_session
from campus.db.models import User

router = APIRouter(prefix="/api/course", tags=["Courses"])


@router.post("", response_model=CourseResponse, status_code=201)
async def create(
    body: CourseCreateRequest,
    user: User = Depends(require_permission("course", "create")),
    db: AsyncSession = Depends(get_session),
) -> CourseResponse:
    course = await create_course(db, user.campus_id, user.id, **body.model_dump())  # type: ignore[arg-type]
    await db.commit()
    return CourseResponse.model_validate(course)


@router.get("", response_model=CourseListResponse)
async def list_all(
    status: str | None = Query(None),
    category: str | None = Query(None),
    class_id: str | None = Query(None),
    search: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(require_permission("course", "read")),
    db: AsyncSession = Depends(get_session),
) -> CourseListResponse:
    courses, total = await list_courses(
        db,
        user.campus_id,  # type: ignore[arg-type]
        user,
        status=status,
        category=category,
        class_id=class_id,
        search=search,
        page=page,
        per_page=per_page,
    )
    return CourseListResponse(
        courses=[CourseResponse.model_validate(c) for c in courses],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/enrollments/me", response_model=list[EnrollmentWithCourse])
async def my_courses(
    user: User = Depends(require_permission("enrollment", "read_own")),
    db: AsyncSession = Depends(get_session),
) -> list[EnrollmentWithCourse]:
    rows = await my_enrollments(db, user.campus_id, user.id)  # type: ignore[arg-type]
    return [
        EnrollmentWithCourse(
            **EnrollmentResponse.model_validate(e).model_dump(),
            course=CourseResponse.model_validate(c),
        )
        for e, c in rows
    ]


@router.get("/{course_id}", response_model=CourseResponse)
async def get_one(
    course_id: str,
    user: User = Depends(require_permission("course", "read")),
    db: AsyncSession = Depends(get_session),
) -> CourseResponse:
    return CourseResponse.model_validate(await get_course(db, user.campus_id, course_id, viewer=user))  # type: ignore[arg-type]


@router.patch("/{course_id}", response_model=CourseResponse)
async def patch(
    course_id: str,
    body: CourseUpdateRequest,
    user: User = Depends(require_permission("course", "update")),
    db: AsyncSession = Depends(get_session),
) -> CourseResponse:
    course = await update_course(db, user.campus_id, course_id, body.model_dump(exclude_unset=True))  # type: ignore[arg-type]
    await db.commit()
    return CourseResponse.model_validate(course)


@router.delete("/{course_id}")
async def delete(
    course_id: str,
    user: User = Depends(require_permission("course", "delete")),
    db: AsyncSession = Depends(get_session),
):
    await delete_course(db, user.campus_id, course_id)  # type: ignore[arg-type]
    await db.commit()
    return {"detail": "Course deleted"}


@router.post("/{course_id}/enroll", response_model=EnrollmentResponse, status_code=201)
async def enroll_in_course(
    course_id: str,
    body: EnrollRequest | None = None,
    user: User = Depends(require_permission("enrollment", "create")),
    db: AsyncSession = Depends(get_session),
) -> EnrollmentResponse:
    student_id = body.student_id if body else None
    enrollment = await enroll(db, user.campus_id, course_id, user, student_id)  # type: ignore[arg-type]
    await db.commit()
    return EnrollmentResponse.model_validate(enrollment)


@router.get("/{course_id}/enrollments", response_model=list[EnrollmentWithStudent])
async def enrollments(
    course_id: str,
    status: str | None = Query(None),
    user: User = Depends(require_permission("enrollment", "read")),
    db: AsyncSession = Depends(get_session),
) -> list[EnrollmentWithStudent]:
    rows = await list_enrollments(db, user.campus_id, course_id, status=status)  # type: ignore[arg-type]
    return [
        EnrollmentWithStudent(
            **EnrollmentResponse.model_validate(e).model_dump(),
            student_name=u.full_name,
            student_email=u.email,
        )
        for e, u in rows
    ]


@router.patch("/{course_id}/enrollments/{enrollment_id}", response_model=EnrollmentResponse)
async def patch_enrollment(
    course_id: str,
    enrollment_id: str,
    body: EnrollmentUpdateRequest,
    user: User = Depends(require_permission("enrollment", "update")),
    db: AsyncSession = Depends(get_session),
) -> EnrollmentResponse:
    enrollment = await update_enrollment(
        db, user.campus_id, course_id, enrollment_id, body.enrollment_status  # type: ignore[arg-type]
    )
    await db.commit()
    return EnrollmentResponse.model_validate(enrollment)


@router.post("/{course_id}/watch-history", response_model=ProgressResponse)
async def watch_history(
    course_id: str,
    body: WatchHistoryRequest,
    user: User = Depends(require_permission("progress", "create")),
    db: AsyncSession = Depends(get_session),
) -> ProgressResponse:
    progress = await record_watch_history(db, user.campus_id, course_id, user, **body.model_dump())  # type: ignore[arg-type]
    await db.commit()
    return ProgressResponse.model_validate(progress)


@router.get("/{course_id}/progress", response_model=ProgressResponse)
async def progress(
    course_id: str,
    user_id: str | None = Query(None, description="Learner to inspect; staff only"),
    user: User = Depends(require_permission("progress", "read")),
    db: AsyncSession = Depends(get_session),
) -> ProgressResponse:
    learner_id = user.id if user.user_type == STUDENT or user_id is None else user_id
    return ProgressResponse.model_validate(await get_progress(db, user.campus_id, course_id, learner_id))  # type: ignore[arg-type]
