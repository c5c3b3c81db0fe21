"""Request schemas for campus user management."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field, field_validator

from campus.auth.schemas import UserResponse


class UserCreateRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    user_type: str = Field(..., pattern=r"^(Admin|Teacher|Student|Parent)$")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)
    phone: str | None = Field(None, max_length=32)
    class_id: str | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()


class UserUpdateRequest(BaseModel):
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=8, max_length=128)
    user_type: str | None = Field(None, pattern=r"^(Admin|Teacher|Student|Parent)$")
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=32)
    class_id: str | None = None
    is_active: bool | None = None


class UserListResponse(BaseModel):
    users: list[UserResponse]
    total: int
    page: int
    per_page: int
