"""Schemas for course, enrollment and progress endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

COURSE_STATUS_PATTERN = r"^(draft|published|archived)$"
DIFFICULTY_PATTERN = r"^(beginner|intermediate|advanced)$"


class CourseCreateRequest(BaseModel):
    course_name: str = Field(..., min_length=1, max_length=200)
    course_code: str = Field(..., min_length=1, max_length=50)
    description: str | None = Field(None, max_length=5000)
    category: str | None = Field(None, max_length=100)
    class_id: str | None = None
    status: str = Field("draft", pattern=COURSE_STATUS_PATTERN)
    difficulty_level: str = Field("beginner", pattern=DIFFICULTY_PATTERN)
    total_chapters: int = Field(0, ge=0, le=1000)
    max_enrollments: int | None = Field(None, ge=1)
    meta_data: dict[str, Any] | None = None


class CourseUpdateRequest(BaseModel):
    course_name: str | None = Field(None, min_length=1, max_length=200)
    course_code: str | None = Field(None, min_length=1, max_length=50)
    description: str | None = Field(None, max_length=5000)
    category: str | None = Field(None, max_length=100)
    class_id: str | None = None
    status: str | None = Field(None, pattern=COURSE_STATUS_PATTERN)
    difficulty_level: str | None = Field(None, pattern=DIFFICULTY_PATTERN)
    total_chapters: int | None = Field(None, ge=0, le=1000)
    max_enrollments: int | None = Field(None, ge=1)
    meta_data: dict[str, Any] | None = None


class CourseResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    campus_id: str
    course_name: str
    course_code: str
    description: str | None = None
    category: str | None = None
    class_id: str | None = None
    created_by: str
    status: str
    difficulty_level: str
    total_chapters: int
    max_enrollments: int | None = None
    enrollment_count: int
    completion_count: int
    meta_data: dict[str, Any] = {}
    created_at: datetime


class CourseListResponse(BaseModel):
    courses: list[CourseResponse]
    total: int
    page: int
    per_page: int


class EnrollRequest(BaseModel):
    student_id: str | None = None


class EnrollmentResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    course_id: str
    user_id: str
    enrollment_type: str
    enrollment_status: str
    progress_percentage: float
    enrolled_by: str | None = None
    enrollment_date: datetime
    completion_date: datetime | None = None
    last_accessed_at: datetime | None = None


class EnrollmentWithStudent(EnrollmentResponse):
    student_name: str = ""
    student_email: str = ""


class EnrollmentWithCourse(EnrollmentResponse):
    course: CourseResponse


class EnrollmentUpdateRequest(BaseModel):
    enrollment_status: str = Field(..., pattern=r"^(active|completed|dropped|suspended)$")


class WatchHistoryRequest(BaseModel):
    content_id: str = Field(..., min_length=1, max_length=64)
    watch_duration: int = Field(..., ge=0)
    last_position: int = Field(0, ge=0)
    is_completed: bool = False


class ProgressResponse(BaseModel):
    model_config = {"from_attributes": True}

    course_id: str
    user_id: str
    total_watch_time: int
    chapters_completed: int
    completion_percentage: float
    is_completed: bool
    last_content_id: str | None = None
    updated_at: datetime | None = None
