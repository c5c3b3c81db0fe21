"""Schemas for attendance endpoints."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field, model_validator

STATUS_PATTERN = r"^(present|absent|late|leave)$"


class MarkAttendanceRequest(BaseModel):
    """Mark one user (``user_id``) or several (``user_ids``) with the same status."""

    date: dt.date
    status: str = Field(..., pattern=STATUS_PATTERN)
    user_id: str | None = None
    user_ids: list[str] | None = Field(None, max_length=500)
    class_id: str | None = None
    remarks: str | None = Field(None, max_length=500)

    @model_validator(mode="after")
    def require_users(self) -> MarkAttendanceRequest:
        if not self.user_id and not self.user_ids:
            msg = "Either user_id or user_ids must be provided"
            raise ValueError(msg)
        return self

    def target_ids(self) -> list[str]:
        return list(self.user_ids) if self.user_ids else [self.user_id]  # type: ignore[list-item]


class BulkAttendanceEntry(BaseModel):
    user_id: str
    status: str = Field(..., pattern=STATUS_PATTERN)
    remarks: str | None = Field(None, max_length=500)


class BulkAttendanceRequest(BaseModel):
    date: dt.date
    class_id: str | None = None
    records: list[BulkAttendanceEntry] = Field(..., min_length=1, max_length=500)


class AttendanceUpdateRequest(BaseModel):
    status: str | None = Field(None, pattern=STATUS_PATTERN)
    remarks: str | None = Field(None, max_length=500)


class AttendanceResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    user_id: str
    class_id: str | None = None
    date: dt.date
    status: str
    user_type: str
    remarks: str | None = None
    marked_by: str | None = None
    updated_at: dt.datetime


class MarkAttendanceResponse(BaseModel):
    records: list[AttendanceResponse]
    errors: list[dict[str, str]]
    total_processed: int
    successful_count: int
    error_count: int


class StudentAttendanceRow(BaseModel):
    student_id: str
    student_name: str
    total_days: int
    present: int
    absent: int
    late: int
    leave: int
    percentage: int
    band: str
    last_attendance_date: dt.date | None = None


class ReportSummary(BaseModel):
    total_students: int
    average_attendance: int
    excellent: int
    good: int
    average: int
    poor: int


class ClassReportResponse(BaseModel):
    class_id: str
    class_name: str
    start_date: dt.date
    end_date: dt.date
    summary: ReportSummary
    students: list[StudentAttendanceRow]
