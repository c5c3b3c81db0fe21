"""Schemas for super-admin endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator

from campus.auth.schemas import UserResponse


class CampusAdminIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()


class CampusCreateRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    code: str = Field(..., min_length=2, max_length=32, pattern=r"^[A-Za-z0-9_-]+$")
    contact_email: EmailStr | None = None
    phone: str | None = Field(None, max_length=32)
    address: str | None = None
    admin: CampusAdminIn


class CampusUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=200)
    contact_email: EmailStr | None = None
    phone: str | None = Field(None, max_length=32)
    address: str | None = None
    is_active: bool | None = None


class CampusResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    name: str
    code: str
    contact_email: str | None = None
    phone: str | None = None
    address: str | None = None
    is_active: bool
    created_at: datetime


class CampusOnboardResponse(BaseModel):
    campus: CampusResponse
    admin: UserResponse
    welcome_email_sent: bool


class CampusListResponse(BaseModel):
    campuses: list[CampusResponse]
    total: int
    page: int
    per_page: int


class SchoolHealthEntry(BaseModel):
    campus_id: str
    name: str
    students: int
    teachers: int
    attendance_rate: float
    course_completion_rate: float
    activity_score: float
    status: str


class AnalyticsResponse(BaseModel):
    campuses: dict[str, int]
    users_by_type: dict[str, int]
    total_users: int
    total_classes: int
    total_courses: int
    total_enrollments: int
    active_devices: int
    total_messages: int
    per_campus: list[dict[str, Any]]
