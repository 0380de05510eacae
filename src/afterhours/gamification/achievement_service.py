"""Achievement evaluation with duplicate prevention and XP rewards."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.db.models import (
    Achievement,
    Event,
    FlexCard,
    TimelineEntry,
    UserAchievement,
    UserConnection,
    UserStreak,
    UserXP,
)
from afterhours.db.upsert import insert_if_absent
from afterhours.gamification.xp_service import add_xp
from afterhours.redis_client import publish_event

logger = logging.getLogger(__name__)

SECRET_PLACEHOLDER = "???"


async def _scalar(db: AsyncSession, stmt) -> int:
    return (await db.execute(stmt)).scalar_one() or 0


async def collect_achievement_stats(db: AsyncSession, user_id: str) -> dict[str, int]:
    """Derive the stat map that achievement requirements are checked against."""
    streak = await db.get(UserStreak, user_id)
    xp = await db.get(UserXP, user_id)

    return {
        "events_attended": await _scalar(
            db, select(func.count()).select_from(TimelineEntry).where(TimelineEntry.user_id == user_id)
        ),
        "streak": streak.longest_streak if streak else 0,
        "cities_visited": await _scalar(
            db,
            select(func.count(distinct(TimelineEntry.event_city))).where(TimelineEntry.user_id == user_id),
        ),
        "total_rep": await _scalar(
            db, select(func.coalesce(func.sum(TimelineEntry.rep_earned), 0)).where(TimelineEntry.user_id == user_id)
        ),
        "followers": await _scalar(
            db,
            select(func.count()).select_from(UserConnection).where(
                UserConnection.following_id == user_id,
                UserConnection.status == "active",
            ),
        ),
        "following": await _scalar(
            db,
            select(func.count()).select_from(UserConnection).where(
                UserConnection.follower_id == user_id,
                UserConnection.status == "active",
            ),
        ),
        "events_hosted": await _scalar(
            db, select(func.count()).select_from(Event).where(Event.host_id == user_id)
        ),
        "total_xp": xp.total_xp if xp else 0,
        "flex_cards": await _scalar(
            db, select(func.count()).select_from(FlexCard).where(FlexCard.user_id == user_id)
        ),
    }


async def get_catalog(db: AsyncSession) -> list[Achievement]:
    result = await db.execute(select(Achievement).order_by(Achievement.sort_order, Achievement.id))
    return list(result.scalars().all())


async def get_user_achievements(db: AsyncSession, user_id: str) -> list[UserAchievement]:
    result = await db.execute(
        select(UserAchievement)
        .where(UserAchievement.user_id == user_id)
        .order_by(UserAchievement.earned_at)
    )
    return list(result.scalars().all())


async def evaluate_achievements(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    stats: dict[str, int],
) -> list[UserAchievement]:
    """Award every achievement whose requirement is met.

    Returns only the achievements earned by this call. Each one is inserted
    with insert-if-absent, and its XP reward is granted only when the insert
    actually happened (keyed ``achievement:{id}:{user}`` so a retry after a
    partial failure cannot pay twice). Requirement types missing from
    ``stats`` are skipped.
    """
    now = datetime.now(timezone.utc)
    earned: list[UserAchievement] = []

    try:
        for achievement in await get_catalog(db):
            value = stats.get(achievement.requirement_type)
            if value is None or value < achievement.requirement_value:
                continue

            row = UserAchievement(
                user_id=user_id,
                achievement_id=achievement.id,
                achievement=achievement,
                earned_at=now,
            )
            if not await insert_if_absent(db, row):
                continue

            if achievement.xp_reward > 0:
                await add_xp(
                    db,
                    redis,
                    user_id,
                    achievement.xp_reward,
                    f"Achievement unlocked: {achievement.name}",
                    source="achievement",
                    source_id=achievement.id,
                    idempotency_key=f"achievement:{achievement.id}:{user_id}",
                )
            earned.append(row)

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    for row in earned:
        logger.info("User %s earned achievement %s", user_id, row.achievement_id)
        await publish_event(
            redis,
            "pubsub:achievement_unlocked",
            json.dumps({
                "user_id": user_id,
                "achievement_id": row.achievement_id,
                "name": row.achievement.name,
                "xp_reward": row.achievement.xp_reward,
            }),
        )
    return earned


def present_achievement(achievement: Achievement, earned: UserAchievement | None) -> dict:
    """Public view of a catalog entry for one user.

    Secret achievements the user has not earned hide their name, description
    and requirement.
    """
    hidden = achievement.is_secret and earned is None
    if earned is not None:
        label = "Earned"
    elif achievement.is_secret:
        label = "Secret"
    else:
        label = "Locked"

    return {
        "id": achievement.id,
        "name": SECRET_PLACEHOLDER if hidden else achievement.name,
        "description": SECRET_PLACEHOLDER if hidden else achievement.description,
        "icon": achievement.icon,
        "category": achievement.category,
        "xp_reward": achievement.xp_reward,
        "is_secret": achievement.is_secret,
        "requirement_type": None if hidden else achievement.requirement_type,
        "requirement_value": None if hidden else achievement.requirement_value,
        "earned": earned is not None,
        "earned_at": earned.earned_at if earned is not None else None,
        "label": label,
    }


async def list_achievements_for_user(db: AsyncSession, user_id: str) -> list[dict]:
    """Whole catalog with secrecy applied for ``user_id``."""
    earned = {ua.achievement_id: ua for ua in await get_user_achievements(db, user_id)}
    return [present_achievement(a, earned.get(a.id)) for a in await get_catalog(db)]
