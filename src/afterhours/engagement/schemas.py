"""Pydantic request/response models for timeline, streak and flex-card endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class PeriodStatsResponse(BaseModel):
    nights: int
    rep: int


class TimelineStatsResponse(BaseModel):
    total_nights: int
    total_hours: float
    total_rep: int
    cities_visited: list[str]
    current_streak: int
    longest_streak: int
    favorite_city: str | None = None
    this_week: PeriodStatsResponse
    this_month: PeriodStatsResponse
    last_activity_date: date | None = None


# --- Timeline ---


class TimelineEntryCreate(BaseModel):
    event_id: str | None = Field(default=None, max_length=64)
    event_name: str = Field(min_length=1, max_length=200)
    event_city: str = Field(min_length=1, max_length=100)
    attended_date: date
    duration_hours: float | None = Field(default=None, ge=0, le=48)
    rep_earned: int = Field(default=0, ge=0)
    highlight_moment: str | None = Field(default=None, max_length=500)
    is_public: bool = True


class TimelineEntryUpdate(BaseModel):
    highlight_moment: str | None = Field(default=None, max_length=500)
    is_public: bool | None = None


class TimelineEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: str | None = None
    event_name: str
    event_city: str
    attended_date: date
    duration_hours: float | None = None
    rep_earned: int
    highlight_moment: str | None = None
    is_public: bool
    created_at: datetime | None = None


class TimelineResponse(BaseModel):
    entries: list[TimelineEntryResponse]
    stats: TimelineStatsResponse


# --- Streak & milestones ---


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    last_activity_date: date | None = None
    total_events_attended: int
    events_this_month: int
    next_events_milestone: int | None = None
    events_milestone_progress: int
    next_streak_milestone: int | None = None
    streak_milestone_progress: int
    stats: TimelineStatsResponse


class MilestoneResponse(BaseModel):
    milestone_type: str
    milestone_value: int
    label: str
    achieved_at: datetime


class MilestonesResponse(BaseModel):
    milestones: list[MilestoneResponse]
    newly_notified: list[MilestoneResponse]


# --- Flex cards ---


class FlexCardCreate(BaseModel):
    card_type: Literal["weekly_recap", "monthly_stats", "milestone", "streak"]
    is_public: bool = True


class FlexCardResponse(BaseModel):
    card_type: str
    title: str
    subtitle: str | None = None
    stats: dict[str, Any]
    share_code: str
    share_url: str
    is_public: bool
    created_at: datetime | None = None


class FlexCardsResponse(BaseModel):
    cards: list[FlexCardResponse]
