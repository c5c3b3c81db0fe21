"""User management router: /api/users/*."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from campus.auth.policy import require_permission
from campus.auth.schemas import UserResponse
from campus.config import get_settings
from campus.database import get_session
from campus.db.models import Campus, User
from campus.email.service import get_email_service
from campus.users.schemas import UserCreateRequest, UserListResponse, UserUpdateRequest
from campus.users.service import (
    create_user,
    get_campus_user,
    list_users,
    soft_delete_user,
    update_user,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.post("", response_model=UserResponse, status_code=201)
async def create(
    body: UserCreateRequest,
    admin: User = Depends(require_permission("user", "create")),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Create a campus user, then tell them their account exists (best effort)."""
    user = await create_user(db, admin.campus_id, **body.model_dump())  # type: ignore[arg-type]
    await db.commit()

    campus = await db.get(Campus, user.campus_id)
    sent = await get_email_service().send_template(
        user.email,
        "account_created",
        {
            "campus_name": campus.name if campus else "",
            "full_name": user.full_name,
            "user_type": user.user_type,
            "login_url": f"{get_settings().frontend_base_url}/login",
        },
    )
    if not sent:
        logger.warning("account_created_email_not_sent", user_id=user.id)
    return UserResponse.model_validate(user)


@router.get("", response_model=UserListResponse)
async def list_all(
    user_type: str | None = Query(None),
    class_id: str | None = Query(None),
    is_active: bool | None = Query(None),
    search: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    caller: User = Depends(require_permission("user", "read")),
    db: AsyncSession = Depends(get_session),
) -> UserListResponse:
    users, total = await list_users(
        db,
        caller.campus_id,  # type: ignore[arg-type]
        user_type=user_type,
        class_id=class_id,
        is_active=is_active,
        search=search,
        page=page,
        per_page=per_page,
    )
    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_one(
    user_id: str,
    caller: User = Depends(require_permission("user", "read")),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    return UserResponse.model_validate(await get_campus_user(db, caller.campus_id, user_id))  # type: ignore[arg-type]


@router.patch("/{user_id}", response_model=UserResponse)
async def patch(
    user_id: str,
    body: UserUpdateRequest,
    admin: User = Depends(require_permission("user", "update")),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    user = await update_user(db, admin.campus_id, user_id, body.model_dump(exclude_unset=True))  # type: ignore[arg-type]
    await db.commit()
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", status_code=200)
async def delete(
    user_id: str,
    admin: User = Depends(require_permission("user", "delete")),
    db: AsyncSession = Depends(get_session),
):
    if user_id == admin.id:
        raise ValueError("You cannot delete your own account")
    await soft_delete_user(db, admin.campus_id, user_id)  # type: ignore[arg-type]
    await db.commit()
    return {"detail": "User deleted"}
