"""
Authentication business logic.

Handles credential checks and the Redis-backed failed-login lockout.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select

from campus.auth.password import check_needs_rehash, hash_password, verify_password
from campus.config import get_settings
from campus.db.models import Campus, User

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower().strip()))
    return result.scalar_one_or_none()


async def is_campus_active(db: AsyncSession, campus_id: str | None) -> bool:
    """Super admins (no campus) are never blocked by campus state."""
    if campus_id is None:
        return True
    result = await db.execute(select(Campus.is_active).where(Campus.id == campus_id))
    active = result.scalar_one_or_none()
    return bool(active)


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def authenticate_user(
    db: AsyncSession,
    redis: Redis | None,
    email: str,
    password: str,
) -> User:
    """
    Authenticate a user with email + password.

    Raises:
        ValueError: If credentials are invalid.
        PermissionError: If the account is locked, inactive, or its campus is suspended.
    """
    user = await get_user_by_email(db, email)
    if user is None or user.is_deleted:
        msg = "Invalid email or password"
        raise ValueError(msg)

    if await check_account_lockout(redis, user.id):
        msg = "Account temporarily locked. Try again later."
        raise PermissionError(msg)

    if not verify_password(password, user.password_hash or ""):
        await increment_failed_login(redis, user.id)
        logger.info("login_failed", user_id=user.id)
        msg = "Invalid email or password"
        raise ValueError(msg)

    if not user.is_active:
        msg = "Account is deactivated"
        raise PermissionError(msg)
    if not await is_campus_active(db, user.campus_id):
        msg = "Campus is inactive"
        raise PermissionError(msg)

    await clear_failed_login(redis, user.id)

    user.last_login = datetime.now(timezone.utc)
    user.login_count = (user.login_count or 0) + 1
    if user.password_hash and check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        logger.info("password_rehashed", user_id=user.id)
    await db.flush()

    logger.info("login_succeeded", user_id=user.id, campus_id=user.campus_id, user_type=user.user_type)
    return user


# ---------------------------------------------------------------------------
# Account lockout (skipped when Redis is not available)
# ---------------------------------------------------------------------------


async def check_account_lockout(redis: Redis | None, user_id: str) -> bool:
    if redis is None:
        return False
    settings = get_settings()
    count_str = await redis.get(f"login_attempts:{user_id}")
    if count_str is None:
        return False
    return int(count_str) >= settings.account_lockout_threshold


async def increment_failed_login(redis: Redis | None, user_id: str) -> int:
    """Increment failed login counter. Returns the new count (0 without Redis)."""
    if redis is None:
        return 0
    settings = get_settings()
    key = f"login_attempts:{user_id}"
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, settings.account_lockout_duration_minutes * 60)
    return int(count)


async def clear_failed_login(redis: Redis | None, user_id: str) -> None:
    if redis is None:
        return
    await redis.delete(f"login_attempts:{user_id}")
