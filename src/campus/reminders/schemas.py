"""Pydantic schemas for reminder endpoints."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field

_TIME = r"^([01]\d|2[0-3]):[0-5]\d$"
_FREQUENCY = r"^(one_time|daily|weekly)$"


class ReminderCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    note: str | None = Field(None, max_length=2000)
    reminder_date: dt.date
    reminder_time: str = Field(..., pattern=_TIME, description="HH:mm, 24-hour")
    frequency: str = Field("one_time", pattern=_FREQUENCY)


class ReminderUpdateRequest(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    note: str | None = Field(None, max_length=2000)
    reminder_date: dt.date | None = None
    reminder_time: str | None = Field(None, pattern=_TIME)
    frequency: str | None = Field(None, pattern=_FREQUENCY)
    is_active: bool | None = None


class ReminderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    note: str | None = None
    reminder_date: dt.date
    reminder_time: str
    reminder_datetime: dt.datetime
    frequency: str
    is_active: bool
    is_sent: bool
    sent_at: dt.datetime | None = None
    created_at: dt.datetime


class ReminderListResponse(BaseModel):
    reminders: list[ReminderResponse]
    total: int
    page: int
    limit: int


class ReminderStatsResponse(BaseModel):
    total: int
    active: int
    pending: int
    completed: int
    by_frequency: dict[str, int]
