"""Authentication router: /api/auth/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from campus.auth.dependencies import get_current_user
from campus.auth.jwt import create_access_token
from campus.auth.schemas import LoginRequest, TokenResponse, UserResponse
from campus.auth.service import authenticate_user
from campus.config import get_settings
from campus.database import get_session
from campus.db.models import User
from campus.dependencies import get_redis_dep

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
) -> TokenResponse:
    """Log in with email + password."""
    try:
        user = await authenticate_user(db, redis, body.email, body.password)  # type: ignore[arg-type]
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except PermissionError as e:
        detail = str(e)
        status = 429 if "locked" in detail.lower() else 403
        raise HTTPException(status_code=status, detail=detail) from e
    await db.commit()

    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(user.id, user.campus_id, user.user_type),
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)
