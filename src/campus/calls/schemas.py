"""Schemas for call endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CallCreateRequest(BaseModel):
    participant_ids: list[str] = Field(..., min_length=1, max_length=50)
    call_type: str = Field("video", pattern=r"^(audio|video)$")
    screen_sharing_enabled: bool = False
    recording_enabled: bool = False
