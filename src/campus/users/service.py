"""Campus user management business logic."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, or_, select

from campus.auth.password import hash_password, validate_password_strength
from campus.auth.policy import SUPER_ADMIN
from campus.auth.service import get_user_by_email
from campus.db.models import USER_TYPES, User
from campus.exceptions import ConflictError, NotFoundError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

CAMPUS_USER_TYPES = tuple(t for t in USER_TYPES if t != SUPER_ADMIN)


async def get_campus_user(db: AsyncSession, campus_id: str, user_id: str) -> User:
    """Fetch a live user of the campus. Users of other campuses read as missing."""
    result = await db.execute(
        select(User).where(User.id == user_id, User.campus_id == campus_id, User.is_deleted.is_(False))
    )
    user = result.scalar_one_or_none()
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)
    return user


async def get_campus_users_by_ids(db: AsyncSession, campus_id: str, user_ids: list[str]) -> dict[str, User]:
    if not user_ids:
        return {}
    result = await db.execute(
        select(User).where(User.id.in_(user_ids), User.campus_id == campus_id, User.is_deleted.is_(False))
    )
    return {u.id: u for u in result.scalars().all()}


async def create_user(
    db: AsyncSession,
    campus_id: str,
    *,
    email: str,
    password: str,
    user_type: str,
    first_name: str,
    last_name: str = "",
    phone: str | None = None,
    class_id: str | None = None,
) -> User:
    """
    Create a user inside a campus.

    Raises:
        ValueError: Unknown user type or weak password.
        ConflictError: Email already registered.
    """
    if user_type not in CAMPUS_USER_TYPES:
        msg = f"Invalid user_type: {user_type}"
        raise ValueError(msg)
    validate_password_strength(password)
    if await get_user_by_email(db, email) is not None:
        msg = "Email already registered"
        raise ConflictError(msg)

    user = User(
        campus_id=campus_id,
        email=email.lower().strip(),
        password_hash=hash_password(password),
        user_type=user_type,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        class_id=class_id,
    )
    db.add(user)
    await db.flush()
    logger.info("user_created", user_id=user.id, campus_id=campus_id, user_type=user_type)
    return user


async def list_users(
    db: AsyncSession,
    campus_id: str,
    *,
    user_type: str | None = None,
    class_id: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[User], int]:
    conditions = [User.campus_id == campus_id, User.is_deleted.is_(False)]
    if user_type:
        conditions.append(User.user_type == user_type)
    if class_id:
        conditions.append(User.class_id == class_id)
    if is_active is not None:
        conditions.append(User.is_active.is_(is_active))
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(
            or_(
                func.lower(User.first_name).like(pattern),
                func.lower(User.last_name).like(pattern),
                func.lower(User.email).like(pattern),
            )
        )

    total = (await db.execute(select(func.count()).select_from(User).where(*conditions))).scalar_one()
    result = await db.execute(
        select(User)
        .where(*conditions)
        .order_by(User.first_name, User.last_name)
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def update_user(db: AsyncSession, campus_id: str, user_id: str, changes: dict[str, Any]) -> User:
    user = await get_campus_user(db, campus_id, user_id)
    if "email" in changes and changes["email"] != user.email:
        other = await get_user_by_email(db, changes["email"])
        if other is not None and other.id != user.id:
            msg = "Email already registered"
            raise ConflictError(msg)
    if "user_type" in changes and changes["user_type"] not in CAMPUS_USER_TYPES:
        msg = f"Invalid user_type: {changes['user_type']}"
        raise ValueError(msg)
    if "password" in changes:
        password = changes.pop("password")
        validate_password_strength(password)
        user.password_hash = hash_password(password)
    for field, value in changes.items():
        setattr(user, field, value)
    await db.flush()
    return user


async def soft_delete_user(db: AsyncSession, campus_id: str, user_id: str) -> None:
    user = await get_campus_user(db, campus_id, user_id)
    user.is_deleted = True
    user.is_active = False
    await db.flush()
    logger.info("user_deleted", user_id=user_id, campus_id=campus_id)
