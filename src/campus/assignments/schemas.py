"""Schemas for assignment endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AssignmentCreateRequest(BaseModel):
    class_id: str
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=10000)
    subject: str | None = Field(None, max_length=100)
    due_date: datetime
    max_score: float = Field(100.0, gt=0, le=1000)

    @field_validator("due_date")
    @classmethod
    def utc_due_date(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


class AssignmentUpdateRequest(BaseModel):
    class_id: str | None = None
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=10000)
    subject: str | None = Field(None, max_length=100)
    due_date: datetime | None = None
    max_score: float | None = Field(None, gt=0, le=1000)

    @field_validator("due_date")
    @classmethod
    def utc_due_date(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


class AssignmentResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    campus_id: str
    class_id: str
    title: str
    description: str | None = None
    subject: str | None = None
    due_date: datetime
    max_score: float
    created_by: str
    created_at: datetime


class AssignmentListResponse(BaseModel):
    assignments: list[AssignmentResponse]
    total: int
    page: int
    per_page: int


class SubmissionCreateRequest(BaseModel):
    content: str | None = Field(None, max_length=50000)
    attachments: list[str] = Field(default_factory=list, max_length=20)


class SubmissionResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    assignment_id: str
    student_id: str
    content: str | None = None
    attachments: list[str] = []
    status: str
    is_late: bool
    grade: float | None = None
    feedback: str | None = None
    graded_by: str | None = None
    graded_at: datetime | None = None
    submitted_at: datetime


class SubmissionWithStudent(SubmissionResponse):
    student_name: str = ""


class GradeRequest(BaseModel):
    grade: float = Field(..., ge=0)
    feedback: str | None = Field(None, max_length=5000)
