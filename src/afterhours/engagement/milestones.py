"""Milestone thresholds, labels and dedup-safe recording."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.db.models import Milestone, UserStreak
from afterhours.db.upsert import insert_if_absent
from afterhours.exceptions import InvalidInputError
from afterhours.redis_client import publish_event

logger = logging.getLogger(__name__)

MILESTONES: dict[str, list[int]] = {
    "events_attended": [1, 5, 10, 25, 50, 100],
    "streak": [3, 7, 14, 30, 60, 100],
    "friends": [5, 10, 25, 50, 100],
    "hosted": [1, 5, 10, 25],
}

MILESTONE_LABELS: dict[str, dict[int, str]] = {
    "events_attended": {
        1: "First Event! 🎉",
        5: "Party Starter",
        10: "Regular",
        25: "Social Butterfly",
        50: "Party Animal",
        100: "Legend",
    },
    "streak": {
        3: "On a Roll",
        7: "Week Warrior",
        14: "Two Week Streak",
        30: "Monthly Master",
        60: "Unstoppable",
        100: "Century Streak",
    },
    "friends": {
        5: "Making Friends",
        10: "Popular",
        25: "Influencer",
        50: "Social Star",
        100: "Party Icon",
    },
    "hosted": {
        1: "First Host",
        5: "Party Planner",
        10: "Event Pro",
        25: "Host Legend",
    },
}


def _thresholds(milestone_type: str) -> list[int]:
    try:
        return MILESTONES[milestone_type]
    except KeyError:
        raise InvalidInputError(f"Unknown milestone type: {milestone_type}") from None


def milestone_label(milestone_type: str, value: int) -> str:
    return MILESTONE_LABELS.get(milestone_type, {}).get(value, f"{value} {milestone_type}")


def reached_thresholds(milestone_type: str, value: int) -> list[int]:
    return [t for t in _thresholds(milestone_type) if value >= t]


def next_milestone(milestone_type: str, value: int) -> int | None:
    """Smallest threshold above ``value``, or None once all are reached."""
    return next((t for t in _thresholds(milestone_type) if t > value), None)


def milestone_progress(milestone_type: str, value: int) -> int:
    """Percentage (0-100) from the previous threshold to the next one."""
    upcoming = next_milestone(milestone_type, value)
    if upcoming is None:
        return 100
    reached = reached_thresholds(milestone_type, value)
    previous = reached[-1] if reached else 0
    return max(0, min(100, 100 * (value - previous) // (upcoming - previous)))


async def insert_milestone(
    db: AsyncSession,
    user_id: str,
    milestone_type: str,
    value: int,
    now: datetime | None = None,
) -> bool:
    """Record a milestone. Returns False if it was already recorded."""
    row = Milestone(
        user_id=user_id,
        milestone_type=milestone_type,
        milestone_value=value,
        achieved_at=now or datetime.now(timezone.utc),
        notified=False,
    )
    return await insert_if_absent(db, row)


async def check_streak_milestones(
    db: AsyncSession,
    streak: UserStreak,
    now: datetime | None = None,
) -> list[tuple[str, int]]:
    """Record every streak and attendance milestone the snapshot has reached.

    Both the current and the longest streak count, so a broken streak does
    not lose milestones it already passed. Returns the newly inserted
    ``(type, value)`` pairs; the caller commits.
    """
    return await record_reached_milestones(
        db,
        streak.user_id,
        {
            "streak": max(streak.current_streak, streak.longest_streak),
            "events_attended": streak.total_events_attended,
        },
        now,
    )


async def record_reached_milestones(
    db: AsyncSession,
    user_id: str,
    values: dict[str, int],
    now: datetime | None = None,
) -> list[tuple[str, int]]:
    """Insert every threshold reached by ``values`` (type -> current value)."""
    new: list[tuple[str, int]] = []
    for milestone_type, value in values.items():
        for threshold in reached_thresholds(milestone_type, value):
            if await insert_milestone(db, user_id, milestone_type, threshold, now):
                new.append((milestone_type, threshold))
    return new


async def list_milestones(db: AsyncSession, user_id: str) -> list[Milestone]:
    result = await db.execute(
        select(Milestone)
        .where(Milestone.user_id == user_id)
        .order_by(Milestone.achieved_at.desc(), Milestone.id.desc())
    )
    return list(result.scalars().all())


async def pop_unnotified_milestones(db: AsyncSession, user_id: str) -> list[Milestone]:
    """Return milestones the user has not been shown yet and mark them notified."""
    result = await db.execute(
        select(Milestone)
        .where(Milestone.user_id == user_id, Milestone.notified.is_(False))
        .order_by(Milestone.achieved_at, Milestone.id)
    )
    pending = list(result.scalars().all())
    if pending:
        await db.execute(
            update(Milestone)
            .where(Milestone.id.in_([m.id for m in pending]))
            .values(notified=True)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    return pending


async def announce_milestones(
    redis: object | None,
    user_id: str,
    milestones: list[tuple[str, int]],
) -> None:
    """Broadcast newly reached milestones for live clients."""
    for milestone_type, value in milestones:
        logger.info("User %s reached milestone %s=%d", user_id, milestone_type, value)
        await publish_event(
            redis,
            "pubsub:milestone",
            json.dumps({
                "user_id": user_id,
                "type": milestone_type,
                "value": value,
                "label": milestone_label(milestone_type, value),
            }),
        )
