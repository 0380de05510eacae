"""Pydantic request/response models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# --- XP ---


class LevelProgressResponse(BaseModel):
    total_xp: int
    level: int
    next_level: int
    next_level_xp: int
    current: int
    needed: int
    percentage: int


class XPResponse(LevelProgressResponse):
    user_id: str
    xp_this_week: int
    xp_this_month: int


class XPHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    amount: int
    source: str
    source_id: str | None = None
    reason: str | None = None
    created_at: datetime | None = None


class XPHistoryResponse(BaseModel):
    entries: list[XPHistoryEntry]
    total: int
    page: int
    per_page: int


class AwardXPRequest(BaseModel):
    amount: int = Field(ge=0)
    reason: str | None = Field(default=None, max_length=256)
    idempotency_key: str | None = Field(default=None, max_length=256)


class AwardXPResponse(BaseModel):
    awarded: bool
    xp: XPResponse


# --- Achievements ---


class AchievementResponse(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    category: str
    xp_reward: int
    is_secret: bool
    requirement_type: str | None = None
    requirement_value: int | None = None
    earned: bool
    earned_at: datetime | None = None
    label: str


class AchievementsResponse(BaseModel):
    achievements: list[AchievementResponse]
    total_available: int
    total_earned: int


class NewAchievement(BaseModel):
    id: str
    name: str
    xp_reward: int
    earned_at: datetime


class EvaluateAchievementsResponse(BaseModel):
    stats: dict[str, int]
    newly_earned: list[NewAchievement]


# --- Quests ---


class QuestResponse(BaseModel):
    id: str
    title: str
    description: str
    xp_reward: int
    quest_type: str
    requirement_type: str
    requirement_value: int
    expires_at: datetime
    progress: int
    completed_at: datetime | None = None
    claimed_at: datetime | None = None
    state: str


class QuestBoardResponse(BaseModel):
    quests: list[QuestResponse]


class ClaimResponse(BaseModel):
    status: str
    quest_id: str
    xp_awarded: int
    xp: XPResponse


# --- Leaderboard ---


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    xp: int
    level: int


class LeaderboardResponse(BaseModel):
    period: str
    entries: list[LeaderboardEntry]
