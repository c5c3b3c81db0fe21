"""Chat router: /api/chat/* (rooms, messages, stars, forwards, media)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from campus.auth.policy import require_permission
from campus.chat.enhanced import forward_message, get_message_info, get_starred_messages, toggle_star
from campus.chat.media import complete_upload, request_upload_url
from campus.chat.schemas import (
    ForwardRequest,
    MembersAddRequest,
    MessageEditRequest,
    MessageSendRequest,
    RoomCreateRequest,
    SeenRequest,
    UploadCompleteRequest,
    UploadUrlRequest,
)
from campus.chat.service import (
    add_members,
    create_room,
    delete_message,
    edit_message,
    get_member_ids,
    get_messages,
    list_user_rooms,
    load_receipts,
    mark_delivered,
    mark_seen,
    remove_member,
    require_room_access,
    send_message,
    serialize_message,
    serialize_room,
)
from campus.database import get_session
from campus.db.models import User
from campus.dependencies import get_redis_dep

router = APIRouter(prefix="/api/chat", tags=["Chat"])


# --- Rooms ---


@router.post("/rooms", status_code=201)
async def create(
    body: RoomCreateRequest,
    user: User = Depends(require_permission("chat", "create_room")),
    db: AsyncSession = Depends(get_session),
):
    room, _created = await create_room(db, user.campus_id, user, **body.model_dump())  # type: ignore[arg-type]
    await db.commit()
    return serialize_room(room, member_ids=await get_member_ids(db, room.id))


@router.get("/rooms")
async def rooms(
    user: User = Depends(require_permission("chat", "read")),
    db: AsyncSession = Depends(get_session),
):
    return {"rooms": [serialize_room(r) for r in await list_user_rooms(db, user.campus_id, user.id)]}  # type: ignore[arg-type]


@router.get("/rooms/{room_id}")
async def room_detail(
    room_id: str,
    user: User = Depends(require_permission("chat", "read")),
    db: AsyncSession = Depends(get_session),
):
    room = await require_room_access(db, user.campus_id, room_id, user.id)  # type: ignore[arg-type]
    return serialize_room(room, member_ids=await get_member_ids(db, room_id))


@router.post("/rooms/{room_id}/members")
async def add_room_members(
    room_id: str,
    body: MembersAddRequest,
    user: User = Depends(require_permission("chat", "manage_members")),
    db: AsyncSession = Depends(get_session),
):
    added = await add_members(db, user.campus_id, room_id, user, body.user_ids)  # type: ignore[arg-type]
    await db.commit()
    return {"added": added}


@router.delete("/rooms/{room_id}/members/{member_id}")
async def remove_room_member(
    room_id: str,
    member_id: str,
    user: User = Depends(require_permission("chat", "manage_members")),
    db: AsyncSession = Depends(get_session),
):
    await remove_member(db, user.campus_id, room_id, user, member_id)  # type: ignore[arg-type]
    await db.commit()
    return {"detail": "Member removed"}


# --- Messages ---


@router.post("/rooms/{room_id}/messages", status_code=201)
async def send(
    room_id: str,
    body: MessageSendRequest,
    user: User = Depends(require_permission("chat", "send")),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
):
    message, created = await send_message(
        db, user.campus_id, user, room_id, redis=redis, **body.model_dump()  # type: ignore[arg-type]
    )
    await db.commit()
    return {"message": serialize_message(message), "created": created}


@router.get("/rooms/{room_id}/messages")
async def history(
    room_id: str,
    before_sequence: int | None = Query(None, ge=1),
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(require_permission("chat", "read")),
    db: AsyncSession = Depends(get_session),
):
    messages, has_more = await get_messages(
        db, user.campus_id, user.id, room_id, before_sequence=before_sequence, limit=limit  # type: ignore[arg-type]
    )
    receipts = await load_receipts(db, [m.id for m in messages])
    return {
        "messages": [serialize_message(m, receipts.get(m.id, {})) for m in messages],
        "has_more": has_more,
    }


@router.post("/rooms/{room_id}/seen")
async def seen(
    room_id: str,
    body: SeenRequest,
    user: User = Depends(require_permission("chat", "read")),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
):
    count = await mark_seen(
        db, user.campus_id, user.id, room_id, up_to_sequence=body.up_to_sequence, redis=redis  # type: ignore[arg-type]
    )
    await db.commit()
    return {"marked": count}


@router.get("/messages/starred")
async def starred(
    room_id: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(require_permission("chat", "read")),
    db: AsyncSession = Depends(get_session),
):
    return await get_starred_messages(db, user.id, user.campus_id, room_id=room_id, page=page, limit=limit)  # type: ignore[arg-type]


@router.post("/messages/{message_id}/delivered")
async def delivered(
    message_id: str,
    user: User = Depends(require_permission("chat", "read")),
    db: AsyncSession = Depends(get_session),
):
    recorded = await mark_delivered(db, user.campus_id, user.id, message_id)  # type: ignore[arg-type]
    await db.commit()
    return {"recorded": recorded}


@router.patch("/messages/{message_id}")
async def edit(
    message_id: str,
    body: MessageEditRequest,
    user: User = Depends(require_permission("chat", "send")),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
):
    message = await edit_message(db, user.campus_id, user.id, message_id, body.content, redis=redis)  # type: ignore[arg-type]
    await db.commit()
    return serialize_message(message)


@router.delete("/messages/{message_id}")
async def remove(
    message_id: str,
    user: User = Depends(require_permission("chat", "send")),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
):
    await delete_message(db, user.campus_id, user.id, message_id, redis=redis)  # type: ignore[arg-type]
    await db.commit()
    return {"detail": "Message deleted"}


@router.post("/messages/{message_id}/forward")
async def forward(
    message_id: str,
    body: ForwardRequest,
    user: User = Depends(require_permission("chat", "send")),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_redis_dep),
):
    result = await forward_message(db, user, user.campus_id, message_id, body.target_room_ids, redis=redis)  # type: ignore[arg-type]
    await db.commit()
    return result


@router.post("/messages/{message_id}/star")
async def star(
    message_id: str,
    user: User = Depends(require_permission("chat", "read")),
    db: AsyncSession = Depends(get_session),
):
    result = await toggle_star(db, user.id, user.campus_id, message_id)  # type: ignore[arg-type]
    await db.commit()
    return result


@router.get("/messages/{message_id}/info")
async def info(
    message_id: str,
    user: User = Depends(require_permission("chat", "read")),
    db: AsyncSession = Depends(get_session),
):
    return await get_message_info(db, user.id, user.campus_id, message_id)  # type: ignore[arg-type]


# --- Media ---


@router.post("/media/upload-url")
async def upload_url(
    body: UploadUrlRequest,
    user: User = Depends(require_permission("media", "upload")),
    db: AsyncSession = Depends(get_session),
):
    result = await request_upload_url(db, user.campus_id, user.id, **body.model_dump())  # type: ignore[arg-type]
    await db.commit()
    return result


@router.post("/media/{upload_id}/complete")
async def upload_complete(
    upload_id: str,
    body: UploadCompleteRequest,
    user: User = Depends(require_permission("media", "upload")),
    db: AsyncSession = Depends(get_session),
):
    result = await complete_upload(db, user.campus_id, user.id, upload_id, **body.model_dump())  # type: ignore[arg-type]
    await db.commit()
    return result
