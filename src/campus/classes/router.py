"""Class router: /api/class/*."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from campus.auth.policy import require_permission
from campus.auth.schemas import UserResponse
from campus.classes.schemas import (
    AddStudentsRequest,
    AddStudentsResponse,
    ClassCreateRequest,
    ClassDetailResponse,
    ClassListResponse,
    ClassResponse,
    ClassUpdateRequest,
)
from campus.classes.service import (
    add_students,
    create_class,
    delete_class,
    get_class,
    get_roster,
    list_classes,
    list_students,
    remove_student,
    update_class,
)
from campus.database import get_session
from campus.db.models import User

router = APIRouter(prefix="/api/class", tags=["Classes"])


@router.post("", response_model=ClassResponse, status_code=201)
async def create(
    body: ClassCreateRequest,
    admin: User = Depends(require_permission("class", "create")),
    db: AsyncSession = Depends(get_session),
) -> ClassResponse:
    klass = await create_class(db, admin.campus_id, **body.model_dump())  # type: ignore[arg-type]
    await db.commit()
    return ClassResponse.model_validate(klass)


@router.get("", response_model=ClassListResponse)
async def list_all(
    academic_year: str | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    user: User = Depends(require_permission("class", "read")),
    db: AsyncSession = Depends(get_session),
) -> ClassListResponse:
    rows, total = await list_classes(
        db, user.campus_id, academic_year=academic_year, page=page, per_page=per_page  # type: ignore[arg-type]
    )
    classes = []
    for klass, count in rows:
        item = ClassResponse.model_validate(klass)
        item.student_count = count
        classes.append(item)
    return ClassListResponse(classes=classes, total=total, page=page, per_page=per_page)


@router.get("/{class_id}", response_model=ClassDetailResponse)
async def get_one(
    class_id: str,
    user: User = Depends(require_permission("class", "read")),
    db: AsyncSession = Depends(get_session),
) -> ClassDetailResponse:
    klass = await get_class(db, user.campus_id, class_id)  # type: ignore[arg-type]
    roster = await get_roster(db, class_id)
    detail = ClassDetailResponse.model_validate(klass)
    detail.teachers = [UserResponse.model_validate(u) for u in roster["teachers"]]
    detail.students = [UserResponse.model_validate(u) for u in roster["students"]]
    detail.student_count = len(detail.students)
    return detail


@router.patch("/{class_id}", response_model=ClassResponse)
async def patch(
    class_id: str,
    body: ClassUpdateRequest,
    admin: User = Depends(require_permission("class", "update")),
    db: AsyncSession = Depends(get_session),
) -> ClassResponse:
    klass = await update_class(db, admin.campus_id, class_id, body.model_dump(exclude_unset=True))  # type: ignore[arg-type]
    await db.commit()
    return ClassResponse.model_validate(klass)


@router.delete("/{class_id}")
async def delete(
    class_id: str,
    admin: User = Depends(require_permission("class", "delete")),
    db: AsyncSession = Depends(get_session),
):
    await delete_class(db, admin.campus_id, class_id)  # type: ignore[arg-type]
    await db.commit()
    return {"detail": "Class deleted"}


@router.get("/{class_id}/students", response_model=list[UserResponse])
async def students(
    class_id: str,
    user: User = Depends(require_permission("class", "read")),
    db: AsyncSession = Depends(get_session),
) -> list[UserResponse]:
    return [UserResponse.model_validate(u) for u in await list_students(db, user.campus_id, class_id)]  # type: ignore[arg-type]


@router.post("/{class_id}/students", response_model=AddStudentsResponse)
async def add(
    class_id: str,
    body: AddStudentsRequest,
    staff: User = Depends(require_permission("class", "manage_students")),
    db: AsyncSession = Depends(get_session),
) -> AddStudentsResponse:
    result = await add_students(db, staff.campus_id, class_id, body.student_ids)  # type: ignore[arg-type]
    await db.commit()
    return AddStudentsResponse(**result)


@router.delete("/{class_id}/students/{student_id}")
async def remove(
    class_id: str,
    student_id: str,
    staff: User = Depends(require_permission("class", "manage_students")),
    db: AsyncSession = Depends(get_session),
):
    await remove_student(db, staff.campus_id, class_id, student_id)  # type: ignore[arg-type]
    await db.commit()
    return {"detail": "Student removed from class"}
