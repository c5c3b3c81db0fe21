"""Video/audio calls: provider setup, lifecycle and history."""

from __future__ import annotations

import secrets
import time
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select

from campus.calls.getstream import build_settings_override, get_stream_client
from campus.config import get_settings
from campus.db.base import utcnow
from campus.db.models import User, VideoCall, VideoCallParticipant
from campus.exceptions import AccessDeniedError, NotFoundError
from campus.users.service import get_campus_users_by_ids
from campus.ws.publisher import publish_to_user

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

FINISHED_STATUSES = ("ended", "rejected", "missed")


def new_call_id() -> str:
    return f"call_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


def serialize_call(call: VideoCall, participants: list[VideoCallParticipant]) -> dict[str, Any]:
    return {
        "id": call.id,
        "call_id": call.call_id,
        "campus_id": call.campus_id,
        "caller_id": call.caller_id,
        "call_type": call.call_type,
        "call_status": call.call_status,
        "started_at": call.started_at.isoformat() if call.started_at else None,
        "ended_at": call.ended_at.isoformat() if call.ended_at else None,
        "duration": call.duration,
        "call_settings": call.call_settings or {},
        "participants": [
            {
                "user_id": p.user_id,
                "name": p.name,
                "role": p.role,
                "joined_at": p.joined_at.isoformat() if p.joined_at else None,
            }
            for p in participants
        ],
        "created_at": call.created_at.isoformat() if call.created_at else None,
    }


def _token(user_id: str, call_id: str) -> dict[str, Any]:
    validity = get_settings().call_token_validity_seconds
    token = get_stream_client().user_token(user_id, validity, call_cids=[f"default:{call_id}"])
    return {
        "user_id": user_id,
        "call_id": call_id,
        "token": token,
        "expires_at": (utcnow() + timedelta(seconds=validity)).isoformat(),
    }


async def get_participants(db: AsyncSession, call_id: str) -> list[VideoCallParticipant]:
    rows = await db.execute(select(VideoCallParticipant).where(VideoCallParticipant.call_id == call_id))
    return list(rows.scalars().all())


async def _get_call_for(db: AsyncSession, campus_id: str, call_id: str, user_id: str) -> VideoCall:
    call = (
        await db.execute(select(VideoCall).where(VideoCall.call_id == call_id, VideoCall.campus_id == campus_id))
    ).scalar_one_or_none()
    if call is None:
        msg = "Call not found"
        raise NotFoundError(msg)
    if await db.get(VideoCallParticipant, (call_id, user_id)) is None:
        msg = "You are not a participant of this call"
        raise AccessDeniedError(msg)
    return call


async def create_call(
    db: AsyncSession,
    campus_id: str,
    caller: User,
    participant_ids: list[str],
    *,
    call_type: str = "video",
    screen_sharing_enabled: bool = False,
    recording_enabled: bool = False,
    redis: Redis | None = None,
) -> dict[str, Any]:
    """Create the call at the provider, persist it and ring the other participants."""
    others = [uid for uid in dict.fromkeys(participant_ids) if uid != caller.id]
    if not others:
        msg = "A call needs at least one other participant"
        raise ValueError(msg)
    users = await get_campus_users_by_ids(db, campus_id, others)
    for uid in others:
        if uid not in users:
            msg = f"Cannot call {uid}: not a member of your campus"
            raise AccessDeniedError(msg)

    call_id = new_call_id()
    roster = [(caller.id, caller.full_name, "host")] + [(uid, users[uid].full_name, "participant") for uid in others]

    client = get_stream_client()
    await client.upsert_users([{"id": uid, "role": "user", "name": name} for uid, name, _ in roster])
    await client.get_or_create_call(
        call_id,
        created_by_id=caller.id,
        members=[{"user_id": uid, "role": "user"} for uid, _, _ in roster],
        settings_override=build_settings_override(
            call_type, screen_sharing=screen_sharing_enabled, recording=recording_enabled
        ),
    )

    call = VideoCall(
        call_id=call_id,
        campus_id=campus_id,
        caller_id=caller.id,
        call_type=call_type,
        call_status="created",
        call_settings={
            "audio_enabled": True,
            "video_enabled": call_type == "video",
            "screen_sharing_enabled": screen_sharing_enabled and call_type == "video",
            "recording_enabled": recording_enabled,
        },
        meta_data={},
    )
    db.add(call)
    await db.flush()
    participants = [VideoCallParticipant(call_id=call_id, user_id=uid, name=name, role=role) for uid, name, role in roster]
    db.add_all(participants)
    await db.flush()
    logger.info("call_created", call_id=call_id, caller_id=caller.id, participants=len(roster), call_type=call_type)

    payload = serialize_call(call, participants)
    for uid in others:
        await publish_to_user(
            redis,
            uid,
            "call:incoming",
            {"call": payload, "caller_id": caller.id, "caller_name": caller.full_name},
        )
    return {"call": payload, "tokens": [_token(uid, call_id) for uid, _, _ in roster]}


async def join_call(db: AsyncSession, campus_id: str, user_id: str, call_id: str) -> dict[str, Any]:
    call = await _get_call_for(db, campus_id, call_id, user_id)
    if call.call_status in FINISHED_STATUSES:
        msg = f"Call is already {call.call_status}"
        raise ValueError(msg)
    now = utcnow()
    call.call_status = "ongoing"
    if call.started_at is None:
        call.started_at = now
    participant = await db.get(VideoCallParticipant, (call_id, user_id))
    if participant is not None and participant.joined_at is None:
        participant.joined_at = now
    await db.flush()
    logger.info("call_joined", call_id=call_id, user_id=user_id)
    return {"call": serialize_call(call, await get_participants(db, call_id)), **_token(user_id, call_id)}


async def end_call(
    db: AsyncSession, campus_id: str, user_id: str, call_id: str, *, redis: Redis | None = None
) -> dict[str, Any]:
    call = await _get_call_for(db, campus_id, call_id, user_id)
    if call.call_status not in FINISHED_STATUSES:
        now = utcnow()
        call.call_status = "ended"
        call.ended_at = now
        call.duration = int((now - call.started_at).total_seconds()) if call.started_at else 0
        call.meta_data = {**(call.meta_data or {}), "end_reason": "normal", "ended_by": user_id}
        await db.flush()
        logger.info("call_ended", call_id=call_id, duration=call.duration)
    participants = await get_participants(db, call_id)
    for p in participants:
        if p.user_id != user_id:
            await publish_to_user(redis, p.user_id, "call:ended", {"call_id": call_id, "ended_by": user_id})
    return serialize_call(call, participants)


async def reject_call(
    db: AsyncSession, campus_id: str, user_id: str, call_id: str, *, redis: Redis | None = None
) -> dict[str, Any]:
    call = await _get_call_for(db, campus_id, call_id, user_id)
    if call.call_status != "created":
        msg = f"Only ringing calls can be rejected (status: {call.call_status})"
        raise ValueError(msg)
    call.call_status = "rejected"
    call.ended_at = utcnow()
    call.meta_data = {**(call.meta_data or {}), "rejected_by": user_id}
    await db.flush()
    await publish_to_user(redis, call.caller_id, "call:rejected", {"call_id": call_id, "rejected_by": user_id})
    return serialize_call(call, await get_participants(db, call_id))


async def get_call(db: AsyncSession, campus_id: str, user_id: str, call_id: str) -> dict[str, Any]:
    call = await _get_call_for(db, campus_id, call_id, user_id)
    return serialize_call(call, await get_participants(db, call_id))


async def call_history(
    db: AsyncSession,
    campus_id: str,
    user_id: str,
    *,
    status: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict[str, Any]:
    mine = select(VideoCallParticipant.call_id).where(VideoCallParticipant.user_id == user_id)
    conditions = [VideoCall.campus_id == campus_id, VideoCall.call_id.in_(mine)]
    if status:
        conditions.append(VideoCall.call_status == status)

    total = (await db.execute(select(func.count()).select_from(VideoCall).where(*conditions))).scalar_one()
    calls = list(
        (
            await db.execute(
                select(VideoCall)
                .where(*conditions)
                .order_by(VideoCall.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
        )
        .scalars()
        .all()
    )
    by_call: dict[str, list[VideoCallParticipant]] = {c.call_id: [] for c in calls}
    if calls:
        rows = await db.execute(
            select(VideoCallParticipant).where(VideoCallParticipant.call_id.in_(list(by_call)))
        )
        for p in rows.scalars().all():
            by_call[p.call_id].append(p)
    return {
        "calls": [serialize_call(c, by_call[c.call_id]) for c in calls],
        "page": page,
        "limit": limit,
        "total": total,
    }
