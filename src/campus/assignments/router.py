"""Assignment router: /api/assignments/*."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from campus.assignments.schemas import (
    AssignmentCreateRequest,
    AssignmentListResponse,
    AssignmentResponse,
    AssignmentUpdateRequest,
    GradeRequest,
    SubmissionCreateRequest,
    SubmissionResponse,
    SubmissionWithStudent,
)
from campus.assignments.service import (
    create_assignment,
    delete_assignment,
    get_assignment,
    grade_submission,
    list_assignments,
    list_submissions,
    submit,
    update_assignment,
)
from campus.auth.policy import require_permission
from campus.database import get_session
from campus.db.models import User

router = APIRouter(prefix="/api/assignments", tags=["Assignments"])


@router.post("", response_model=AssignmentResponse, status_code=201)
async def create(
    body: AssignmentCreateRequest,
    staff: User = Depends(require_permission("assignment", "create")),
    db: AsyncSession = Depends(get_session),
) -> AssignmentResponse:
    assignment = await create_assignment(db, staff.campus_id, staff.id, **body.model_dump())  # type: ignore[arg-type]
    await db.commit()
    return AssignmentResponse.model_validate(assignment)


@router.get("", response_model=AssignmentListResponse)
async def list_all(
    class_id: str | None = Query(None),
    subject: str | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(require_permission("assignment", "read")),
    db: AsyncSession = Depends(get_session),
) -> AssignmentListResponse:
    assignments, total = await list_assignments(
        db, user.campus_id, user, class_id=class_id, subject=subject, page=page, per_page=per_page  # type: ignore[arg-type]
    )
    return AssignmentListResponse(
        assignments=[AssignmentResponse.model_validate(a) for a in assignments],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.patch("/submissions/{submission_id}/grade", response_model=SubmissionResponse)
async def grade(
    submission_id: str,
    body: GradeRequest,
    staff: User = Depends(require_permission("submission", "grade")),
    db: AsyncSession = Depends(get_session),
) -> SubmissionResponse:
    submission = await grade_submission(
        db, staff.campus_id, submission_id, staff.id, grade=body.grade, feedback=body.feedback  # type: ignore[arg-type]
    )
    await db.commit()
    return SubmissionResponse.model_validate(submission)


@router.get("/{assignment_id}", response_model=AssignmentResponse)
async def get_one(
    assignment_id: str,
    user: User = Depends(require_permission("assignment", "read")),
    db: AsyncSession = Depends(get_session),
) -> AssignmentResponse:
    return AssignmentResponse.model_validate(await get_assignment(db, user.campus_id, assignment_id))  # type: ignore[arg-type]


@router.patch("/{assignment_id}", response_model=AssignmentResponse)
async def patch(
    assignment_id: str,
    body: AssignmentUpdateRequest,
    staff: User = Depends(require_permission("assignment", "update")),
    db: AsyncSession = Depends(get_session),
) -> AssignmentResponse:
    assignment = await update_assignment(
        db, staff.campus_id, assignment_id, body.model_dump(exclude_unset=True)  # type: ignore[arg-type]
    )
    await db.commit()
    return AssignmentResponse.model_validate(assignment)


@router.delete("/{assignment_id}")
async def delete(
    assignment_id: str,
    staff: User = Depends(require_permission("assignment", "delete")),
    db: AsyncSession = Depends(get_session),
):
    await delete_assignment(db, staff.campus_id, assignment_id)  # type: ignore[arg-type]
    await db.commit()
    return {"detail": "Assignment deleted"}


@router.post("/{assignment_id}/submissions", response_model=SubmissionResponse, status_code=201)
async def create_submission(
    assignment_id: str,
    body: SubmissionCreateRequest,
    student: User = Depends(require_permission("submission", "create")),
    db: AsyncSession = Depends(get_session),
) -> SubmissionResponse:
    submission = await submit(
        db, student.campus_id, assignment_id, student, content=body.content, attachments=body.attachments  # type: ignore[arg-type]
    )
    await db.commit()
    return SubmissionResponse.model_validate(submission)


@router.get("/{assignment_id}/submissions", response_model=list[SubmissionWithStudent])
async def submissions(
    assignment_id: str,
    staff: User = Depends(require_permission("submission", "read")),
    db: AsyncSession = Depends(get_session),
) -> list[SubmissionWithStudent]:
    rows = await list_submissions(db, staff.campus_id, assignment_id)  # type: ignore[arg-type]
    return [
        SubmissionWithStudent(**SubmissionResponse.model_validate(s).model_dump(), student_name=u.full_name)
        for s, u in rows
    ]
