"""ORM models for the engagement tables.

User identifiers are opaque strings issued by the identity provider, so
there is no local ``users`` table and no foreign key to one. Tables owned by
other parts of the platform (events, RSVPs, connections, roles, push tokens)
are mapped here because the recap and achievement queries read them.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from afterhours.db.base import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")
# SQLite only autoincrements INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")

USER_ID = String(64)


# ---------------------------------------------------------------------------
# XP
# ---------------------------------------------------------------------------


class UserXP(Base):
    """Denormalized XP summary, one row per user. Mutated only by atomic increments."""

    __tablename__ = "user_xp"

    user_id: Mapped[str] = mapped_column(USER_ID, primary_key=True)
    total_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    xp_this_week: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    xp_this_month: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class XPEvent(Base):
    """Immutable XP award log with optional idempotency key."""

    __tablename__ = "xp_events"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    reason: Mapped[str | None] = mapped_column(String(256), nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(String(256), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


class Achievement(Base):
    """Static achievement catalog, seeded on startup."""

    __tablename__ = "achievements"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str] = mapped_column(String(64), nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    requirement_type: Mapped[str] = mapped_column(String(64), nullable=False)
    requirement_value: Mapped[int] = mapped_column(Integer, nullable=False)
    is_secret: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")


class UserAchievement(Base):
    """Achievements earned by users. UNIQUE(user_id, achievement_id)."""

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="uq_user_achievements_user_achievement"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    achievement_id: Mapped[str] = mapped_column(String(64), ForeignKey("achievements.id"), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    achievement: Mapped[Achievement] = relationship("Achievement", lazy="joined")


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------


class PartyQuest(Base):
    """Time-bounded objective. Created by admins; read-only to this service."""

    __tablename__ = "party_quests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False)
    quest_type: Mapped[str] = mapped_column(String(16), nullable=False)
    requirement_type: Mapped[str] = mapped_column(String(64), nullable=False)
    requirement_value: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class QuestProgress(Base):
    """Per-user quest progress. claimed_at is set once, never cleared."""

    __tablename__ = "user_quest_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "quest_id", name="uq_user_quest_progress_user_quest"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    quest_id: Mapped[str] = mapped_column(String(64), ForeignKey("party_quests.id"), nullable=False)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Streaks & milestones
# ---------------------------------------------------------------------------


class UserStreak(Base):
    """Streak snapshot recomputed from the party timeline."""

    __tablename__ = "user_streaks"

    user_id: Mapped[str] = mapped_column(USER_ID, primary_key=True)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_events_attended: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    events_this_month: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class Milestone(Base):
    """Reached milestone. UNIQUE(user_id, milestone_type, milestone_value)."""

    __tablename__ = "user_milestones"
    __table_args__ = (
        UniqueConstraint("user_id", "milestone_type", "milestone_value", name="uq_user_milestones_type_value"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    milestone_type: Mapped[str] = mapped_column(String(32), nullable=False)
    milestone_value: Mapped[int] = mapped_column(Integer, nullable=False)
    achieved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())


# ---------------------------------------------------------------------------
# Timeline & flex cards
# ---------------------------------------------------------------------------


class TimelineEntry(Base):
    """One night out. Append-only except highlight_moment and is_public."""

    __tablename__ = "party_timeline"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    event_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    event_name: Mapped[str] = mapped_column(String(200), nullable=False)
    event_city: Mapped[str] = mapped_column(String(100), nullable=False)
    attended_date: Mapped[date] = mapped_column(Date, nullable=False)
    duration_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    rep_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    highlight_moment: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class FlexCard(Base):
    """Shareable stats snapshot. Public lookup by share_code only when is_public."""

    __tablename__ = "flex_cards"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    card_type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    subtitle: Mapped[str | None] = mapped_column(String(200), nullable=True)
    stats: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    share_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Weekly recaps
# ---------------------------------------------------------------------------


class WeeklyRecap(Base):
    """Per-user weekly aggregation. At most one per (user_id, week_start)."""

    __tablename__ = "weekly_recaps"
    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_weekly_recaps_user_week"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False)
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    week_end: Mapped[date] = mapped_column(Date, nullable=False)
    events_attended: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_rsvps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    top_venue_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    top_event_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    friends_met: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak_at_week_end: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    highlights: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------------------------------------------------------
# Platform tables read by the engine
# ---------------------------------------------------------------------------


class Event(Base):
    """Maps to the platform 'events' table (read-only here)."""

    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    host_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    location_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    venue_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class EventRSVP(Base):
    """Maps to 'event_rsvps' (read-only here)."""

    __tablename__ = "event_rsvps"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String(64), ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    event: Mapped[Event] = relationship("Event", lazy="joined")


class UserConnection(Base):
    """Maps to 'user_connections' (follower -> following)."""

    __tablename__ = "user_connections"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    follower_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    following_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class UserRole(Base):
    """Maps to 'user_roles' ('admin', 'moderator', ...)."""

    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)


class PushToken(Base):
    """Maps to 'push_tokens'. The engine only deactivates invalid tokens."""

    __tablename__ = "push_tokens"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    token: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)
    platform: Mapped[str] = mapped_column(String(16), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
