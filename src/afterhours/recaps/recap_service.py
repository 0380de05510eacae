"""Weekly recap generation.

Runs once per week for the last completed Monday-Sunday window, either for
a single user or in batch mode for everyone active in that window. Each
user is committed on its own so a crash part-way leaves a state that the
next run resumes from (users with a recap are skipped).
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from sqlalchemy import distinct, func, select, union
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.config import get_settings
from afterhours.db.models import EventRSVP, TimelineEntry, UserConnection, UserStreak, WeeklyRecap
from afterhours.db.upsert import insert_if_absent
from afterhours.engagement.week_utils import previous_week_window
from afterhours.notifications.push import PushService, notify_users

logger = logging.getLogger(__name__)

MAX_HIGHLIGHTS = 3


@dataclass
class RecapBatchResult:
    week_start: date
    week_end: date
    processed: int = 0
    successful: int = 0
    skipped: int = 0
    failures: list[str] = field(default_factory=list)


def _mode(values: list[str]) -> str | None:
    """Most frequent value; ties go to the one seen first."""
    counts = Counter(v for v in values if v)
    return counts.most_common(1)[0][0] if counts else None


async def find_active_users(db: AsyncSession, start: datetime, end: datetime) -> list[str]:
    """Users with an RSVP created or a night out attended inside the window."""
    rsvp_users = select(EventRSVP.user_id).where(
        EventRSVP.created_at >= start,
        EventRSVP.created_at <= end,
    )
    timeline_users = select(TimelineEntry.user_id).where(
        TimelineEntry.attended_date >= start.date(),
        TimelineEntry.attended_date <= end.date(),
    )
    combined = union(rsvp_users, timeline_users).subquery()
    result = await db.execute(select(combined.c.user_id).order_by(combined.c.user_id))
    return [row[0] for row in result]


async def recap_exists(db: AsyncSession, user_id: str, week_start: date) -> bool:
    result = await db.execute(
        select(func.count()).select_from(WeeklyRecap).where(
            WeeklyRecap.user_id == user_id,
            WeeklyRecap.week_start == week_start,
        )
    )
    return result.scalar_one() > 0


async def _count_friends_met(db: AsyncSession, user_id: str, event_ids: list[str]) -> int:
    """Distinct followed users (active connections) who RSVP'd to any of ``event_ids``."""
    if not event_ids:
        return 0
    following = select(UserConnection.following_id).where(
        UserConnection.follower_id == user_id,
        UserConnection.status == "active",
    )
    result = await db.execute(
        select(func.count(distinct(EventRSVP.user_id))).where(
            EventRSVP.event_id.in_(event_ids),
            EventRSVP.user_id.in_(following),
            EventRSVP.user_id != user_id,
        )
    )
    return result.scalar_one()


async def build_recap(
    db: AsyncSession,
    user_id: str,
    start: datetime,
    end: datetime,
) -> WeeklyRecap:
    """Aggregate one user's week into an unsaved WeeklyRecap."""
    rsvps = (
        await db.execute(
            select(EventRSVP)
            .where(
                EventRSVP.user_id == user_id,
                EventRSVP.created_at >= start,
                EventRSVP.created_at <= end,
            )
            .order_by(EventRSVP.created_at, EventRSVP.id)
        )
    ).scalars().all()

    nights = (
        await db.execute(
            select(TimelineEntry)
            .where(
                TimelineEntry.user_id == user_id,
                TimelineEntry.attended_date >= start.date(),
                TimelineEntry.attended_date <= end.date(),
            )
            .order_by(TimelineEntry.attended_date, TimelineEntry.id)
        )
    ).scalars().all()

    events = [r.event for r in rsvps if r.event is not None]
    streak = await db.get(UserStreak, user_id)

    return WeeklyRecap(
        user_id=user_id,
        week_start=start.date(),
        week_end=end.date(),
        events_attended=len(nights),
        total_rsvps=len(rsvps),
        top_event_type=_mode([e.type for e in events]),
        top_venue_id=_mode([e.venue_id for e in events]),
        friends_met=await _count_friends_met(db, user_id, list(dict.fromkeys(r.event_id for r in rsvps))),
        streak_at_week_end=streak.current_streak if streak else 0,
        highlights=[n.highlight_moment for n in nights if n.highlight_moment][:MAX_HIGHLIGHTS],
        created_at=datetime.now(timezone.utc),
    )


async def generate_weekly_recaps(
    db: AsyncSession,
    redis: object | None,
    user_ids: list[str] | None = None,
    now: datetime | None = None,
    push: PushService | None = None,
) -> RecapBatchResult:
    """Generate recaps for the week before ``now``.

    ``user_ids=None`` is batch mode: every user active in the window. Users
    that already have a recap for the week are skipped; a failure for one
    user is logged and recorded without stopping the rest.
    """
    start, end = previous_week_window(now)
    batch = RecapBatchResult(week_start=start.date(), week_end=end.date())

    targets = await find_active_users(db, start, end) if user_ids is None else list(dict.fromkeys(user_ids))
    logger.info("Generating weekly recaps for %s: %d candidates", batch.week_start, len(targets))

    for user_id in targets:
        try:
            if await recap_exists(db, user_id, batch.week_start):
                batch.skipped += 1
                continue

            recap = await build_recap(db, user_id, start, end)
            if not await insert_if_absent(db, recap):
                # Another run got there between the check and the insert
                await db.rollback()
                batch.skipped += 1
                continue
            await db.commit()
        except Exception:
            logger.exception("Weekly recap failed for user %s", user_id)
            await db.rollback()
            batch.processed += 1
            batch.failures.append(user_id)
            continue

        batch.processed += 1
        batch.successful += 1
        await _notify_recap_ready(db, recap, push)

    logger.info(
        "Weekly recaps for %s: %d processed, %d successful, %d skipped, %d failed",
        batch.week_start,
        batch.processed,
        batch.successful,
        batch.skipped,
        len(batch.failures),
    )
    return batch


async def _notify_recap_ready(db: AsyncSession, recap: WeeklyRecap, push: PushService | None) -> None:
    if not get_settings().recap_push_enabled:
        return
    nights = recap.events_attended
    await notify_users(
        db,
        [recap.user_id],
        "Your weekly recap is ready 🌙",
        f"{nights} night{'s' if nights != 1 else ''} out last week. See your highlights!",
        {"type": "weekly_recap", "week_start": recap.week_start.isoformat()},
        push=push,
    )


async def get_latest_recap(db: AsyncSession, user_id: str) -> WeeklyRecap | None:
    result = await db.execute(
        select(WeeklyRecap)
        .where(WeeklyRecap.user_id == user_id)
        .order_by(WeeklyRecap.week_start.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()
