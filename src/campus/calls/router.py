"""Call router: /api/calls/*."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from campus.auth.policy import require_permission
from campus.calls.schemas import CallCreateRequest
from campus.calls.service import call_history, create_call, end_call, get_call, join_call, reject_call
from campus.database import get_session
from campus.db.models import User
from campus.dependencies import get_redis_dep

router = APIRouter(prefix="/api/calls", tags=["Calls"])


@router.post("", status_code=201)
async def create(
    body: CallCreateRequest,
    user: User = Depends(require_permission("call", "create")),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
):
    result = await create_call(
        db,
        user.campus_id,  # type: ignore[arg-type]
        user,
        body.participant_ids,
        call_type=body.call_type,
        screen_sharing_enabled=body.screen_sharing_enabled,
        recording_enabled=body.recording_enabled,
        redis=redis,
    )
    await db.commit()
    return result


@router.get("")
async def history(
    status: str | None = Query(None, pattern=r"^(created|ongoing|ended|missed|rejected)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(require_permission("call", "read")),
    db: AsyncSession = Depends(get_session),
):
    return await call_history(db, user.campus_id, user.id, status=status, page=page, limit=limit)  # type: ignore[arg-type]


@router.get("/{call_id}")
async def get_one(
    call_id: str,
    user: User = Depends(require_permission("call", "read")),
    db: AsyncSession = Depends(get_session),
):
    return await get_call(db, user.campus_id, user.id, call_id)  # type: ignore[arg-type]


@router.post("/{call_id}/join")
async def join(
    call_id: str,
    user: User = Depends(require_permission("call", "update")),
    db: AsyncSession = Depends(get_session),
):
    result = await join_call(db, user.campus_id, user.id, call_id)  # type: ignore[arg-type]
    await db.commit()
    return result


@router.post("/{call_id}/end")
async def end(
    call_id: str,
    user: User = Depends(require_permission("call", "update")),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
):
    result = await end_call(db, user.campus_id, user.id, call_id, redis=redis)  # type: ignore[arg-type]
    await db.commit()
    return result


@router.post("/{call_id}/reject")
async def reject(
    call_id: str,
    user: User = Depends(require_permission("call", "update")),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
):
    result = await reject_call(db, user.campus_id, user.id, call_id, redis=redis)  # type: ignore[arg-type]
    await db.commit()
    return result
