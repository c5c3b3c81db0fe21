"""Request schemas for chat, media and sync endpoints.

Responses are the plain dicts produced by the chat serializers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

ROOM_TYPE_PATTERN = r"^(personal|class_group|subject_group|custom_group)$"
MESSAGE_TYPE_PATTERN = r"^(text|image|video|audio|file|document)$"


class RoomCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    room_type: str = Field("custom_group", pattern=ROOM_TYPE_PATTERN)
    description: str | None = Field(None, max_length=2000)
    class_id: str | None = None
    member_ids: list[str] = Field(default_factory=list, max_length=1000)


class MembersAddRequest(BaseModel):
    user_ids: list[str] = Field(..., min_length=1, max_length=500)


class MessageSendRequest(BaseModel):
    content: str = Field("", max_length=10000)
    message_type: str = Field("text", pattern=MESSAGE_TYPE_PATTERN)
    file_url: str | None = Field(None, max_length=2048)
    file_name: str | None = Field(None, max_length=256)
    file_size: int | None = Field(None, ge=0)
    client_message_id: str | None = Field(None, max_length=64)
    reply_to: str | None = None
    meta_data: dict[str, Any] | None = None


class MessageEditRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)


class SeenRequest(BaseModel):
    up_to_sequence: int | None = Field(None, ge=0)


class ForwardRequest(BaseModel):
    target_room_ids: list[str] = Field(..., min_length=1, max_length=50)


class UploadUrlRequest(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=256)
    file_type: str = Field(..., min_length=1, max_length=128)
    file_size: int = Field(..., gt=0)


class UploadCompleteRequest(BaseModel):
    width: int | None = Field(None, ge=0)
    height: int | None = Field(None, ge=0)
    duration: float | None = Field(None, ge=0)


class DeviceRegisterRequest(BaseModel):
    device_id: str = Field(..., min_length=1, max_length=128)
    device_name: str = Field(..., min_length=1, max_length=128)
    device_type: str = Field(..., pattern=r"^(mobile|tablet|desktop|web)$")
    platform: str = Field(..., min_length=1, max_length=32)
    app_version: str = Field(..., min_length=1, max_length=32)
    push_token: str | None = Field(None, max_length=4096)


# --- Socket payloads (the HTTP path parameters travel in the frame body) ---


class SocketMessageSendRequest(MessageSendRequest):
    room_id: str = Field(..., min_length=1)


class SocketForwardRequest(ForwardRequest):
    message_id: str = Field(..., min_length=1)


class SocketUploadCompleteRequest(UploadCompleteRequest):
    upload_id: str = Field(..., min_length=1)


class MessagesSyncRequest(BaseModel):
    room_id: str = Field(..., min_length=1)
    since_timestamp: datetime | None = None
    since_sequence: int | None = Field(None, ge=0)
    limit: int | None = Field(None, ge=1)
    device_id: str | None = None
