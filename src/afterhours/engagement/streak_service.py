"""Streak snapshots recomputed from the party timeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.db.models import Event, TimelineEntry, UserConnection, UserStreak
from afterhours.db.upsert import insert_if_absent
from afterhours.engagement.milestones import (
    announce_milestones,
    check_streak_milestones,
    milestone_label,
    record_reached_milestones,
)
from afterhours.engagement.stats import TimelineStats, compute_stats
from afterhours.notifications.push import PushService, notify_users

logger = logging.getLogger(__name__)


@dataclass
class StreakRefresh:
    streak: UserStreak
    stats: TimelineStats
    new_milestones: list[tuple[str, int]] = field(default_factory=list)


async def get_or_create_user_streak(db: AsyncSession, user_id: str) -> UserStreak:
    streak = await db.get(UserStreak, user_id)
    if streak is None:
        await insert_if_absent(
            db, UserStreak(user_id=user_id, updated_at=datetime.now(timezone.utc))
        )
        streak = await db.get(UserStreak, user_id)
    return streak  # type: ignore[return-value]


async def load_timeline(db: AsyncSession, user_id: str) -> list[TimelineEntry]:
    result = await db.execute(
        select(TimelineEntry)
        .where(TimelineEntry.user_id == user_id)
        .order_by(TimelineEntry.attended_date.desc(), TimelineEntry.id.desc())
    )
    return list(result.scalars().all())


async def _social_counts(db: AsyncSession, user_id: str) -> dict[str, int]:
    friends = (
        await db.execute(
            select(func.count()).select_from(UserConnection).where(
                UserConnection.follower_id == user_id,
                UserConnection.status == "active",
            )
        )
    ).scalar_one()
    hosted = (
        await db.execute(select(func.count()).select_from(Event).where(Event.host_id == user_id))
    ).scalar_one()
    return {"friends": friends, "hosted": hosted}


async def refresh_user_streak(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    now: datetime | None = None,
    push: PushService | None = None,
) -> StreakRefresh:
    """Recompute the user's streak snapshot and record new milestones.

    1. Aggregate the full timeline with compute_stats
    2. Overwrite the user_streaks row with the result
    3. Insert any newly reached milestones (dedup by unique key)
    4. Commit, then announce new milestones (best effort)
    """
    if now is None:
        now = datetime.now(timezone.utc)

    try:
        stats = compute_stats(await load_timeline(db, user_id), now)

        streak = await get_or_create_user_streak(db, user_id)
        streak.current_streak = stats.current_streak
        streak.longest_streak = max(stats.longest_streak, stats.current_streak)
        streak.last_activity_date = stats.last_activity_date
        streak.total_events_attended = stats.total_nights
        streak.events_this_month = stats.this_month.nights
        streak.updated_at = now

        new = await check_streak_milestones(db, streak, now)
        new += await record_reached_milestones(db, user_id, await _social_counts(db, user_id), now)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if new:
        await announce_milestones(redis, user_id, new)
        labels = ", ".join(milestone_label(t, v) for t, v in new)
        await notify_users(
            db,
            [user_id],
            "Milestone unlocked!",
            labels,
            {"type": "milestone"},
            push=push,
        )

    return StreakRefresh(streak=streak, stats=stats, new_milestones=new)
