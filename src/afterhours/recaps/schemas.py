"""Pydantic request/response models for weekly recap endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class WeeklyRecapRequest(BaseModel):
    """Body of the recap trigger. Field names match the scheduler's payload."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(default=None, alias="userId", max_length=64)
    batch_mode: bool = Field(default=False, alias="batchMode")


class WeekWindow(BaseModel):
    start: date
    end: date


class WeeklyRecapRunResponse(BaseModel):
    success: bool
    processed: int
    successful: int
    skipped: int
    failures: list[str]
    week: WeekWindow


class WeeklyRecapResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    week_start: date
    week_end: date
    events_attended: int
    total_rsvps: int
    top_venue_id: str | None = None
    top_event_type: str | None = None
    friends_met: int
    streak_at_week_end: int
    highlights: list[str]
    created_at: datetime | None = None
