"""Schemas for class endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from campus.auth.schemas import UserResponse


class ClassCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    academic_year: str | None = Field(None, max_length=16)
    class_teacher_id: str | None = None
    meta_data: dict[str, Any] | None = None


class ClassUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    academic_year: str | None = Field(None, max_length=16)
    class_teacher_id: str | None = None
    is_active: bool | None = None
    meta_data: dict[str, Any] | None = None


class ClassResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    campus_id: str
    name: str
    academic_year: str | None = None
    class_teacher_id: str | None = None
    is_active: bool
    meta_data: dict[str, Any] = {}
    created_at: datetime
    student_count: int | None = None


class ClassDetailResponse(ClassResponse):
    teachers: list[UserResponse] = []
    students: list[UserResponse] = []


class ClassListResponse(BaseModel):
    classes: list[ClassResponse]
    total: int
    page: int
    per_page: int


class AddStudentsRequest(BaseModel):
    student_ids: list[str] = Field(..., min_length=1, max_length=500)


class AddStudentsResponse(BaseModel):
    added: list[str]
    failed: list[dict[str, str]]
