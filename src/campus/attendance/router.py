"""Attendance router: /api/attendance/*."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from campus.attendance.schemas import (
    AttendanceResponse,
    AttendanceUpdateRequest,
    BulkAttendanceRequest,
    ClassReportResponse,
    MarkAttendanceRequest,
    MarkAttendanceResponse,
)
from campus.attendance.service import class_report, list_attendance, mark_attendance, update_attendance
from campus.auth.policy import STAFF, require_permission
from campus.database import get_session
from campus.db.models import User

router = APIRouter(prefix="/api/attendance", tags=["Attendance"])


def _mark_response(result: dict) -> MarkAttendanceResponse:
    return MarkAttendanceResponse(
        records=[AttendanceResponse.model_validate(r) for r in result["records"]],
        errors=result["errors"],
        total_processed=result["total_processed"],
        successful_count=result["successful_count"],
        error_count=result["error_count"],
    )


@router.post("", response_model=MarkAttendanceResponse, status_code=201)
async def mark(
    body: MarkAttendanceRequest,
    staff: User = Depends(require_permission("attendance", "create")),
    db: AsyncSession = Depends(get_session),
) -> MarkAttendanceResponse:
    entries = [{"user_id": uid, "status": body.status, "remarks": body.remarks} for uid in body.target_ids()]
    result = await mark_attendance(
        db, staff.campus_id, staff.id, entries, class_id=body.class_id, day=body.date  # type: ignore[arg-type]
    )
    await db.commit()
    return _mark_response(result)


@router.post("/bulk", response_model=MarkAttendanceResponse, status_code=201)
async def mark_bulk(
    body: BulkAttendanceRequest,
    staff: User = Depends(require_permission("attendance", "create")),
    db: AsyncSession = Depends(get_session),
) -> MarkAttendanceResponse:
    entries = [r.model_dump() for r in body.records]
    result = await mark_attendance(
        db, staff.campus_id, staff.id, entries, class_id=body.class_id, day=body.date  # type: ignore[arg-type]
    )
    await db.commit()
    return _mark_response(result)


@router.patch("/{attendance_id}", response_model=AttendanceResponse)
async def patch(
    attendance_id: str,
    body: AttendanceUpdateRequest,
    staff: User = Depends(require_permission("attendance", "update")),
    db: AsyncSession = Depends(get_session),
) -> AttendanceResponse:
    record = await update_attendance(
        db, staff.campus_id, attendance_id, body.model_dump(exclude_unset=True), staff.id  # type: ignore[arg-type]
    )
    await db.commit()
    return AttendanceResponse.model_validate(record)


@router.get("", response_model=list[AttendanceResponse])
async def list_all(
    user_id: str | None = Query(None),
    class_id: str | None = Query(None),
    day: date | None = Query(None, alias="date"),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    status: str | None = Query(None),
    user: User = Depends(require_permission("attendance", "read")),
    db: AsyncSession = Depends(get_session),
) -> list[AttendanceResponse]:
    # Non-staff only ever see their own records.
    if user.user_type not in STAFF:
        user_id = user.id
    records = await list_attendance(
        db,
        user.campus_id,  # type: ignore[arg-type]
        user_id=user_id,
        class_id=class_id,
        day=day,
        start_date=start_date,
        end_date=end_date,
        status=status,
    )
    return [AttendanceResponse.model_validate(r) for r in records]


@router.get("/class/{class_id}/report", response_model=ClassReportResponse)
async def report(
    class_id: str,
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    staff: User = Depends(require_permission("attendance", "report")),
    db: AsyncSession = Depends(get_session),
) -> ClassReportResponse:
    data = await class_report(db, staff.campus_id, class_id, start_date=start_date, end_date=end_date)  # type: ignore[arg-type]
    return ClassReportResponse(**data)
