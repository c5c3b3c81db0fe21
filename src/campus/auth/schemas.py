"""Request/response schemas for authentication and user endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()


class UserResponse(BaseModel):
    """Profile returned to the user and to campus staff."""

    model_config = {"from_attributes": True}

    id: str
    campus_id: str | None = None
    user_type: str
    email: str
    first_name: str
    last_name: str
    phone: str | None = None
    class_id: str | None = None
    is_active: bool
    last_login: datetime | None = None
    created_at: datetime | None = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
