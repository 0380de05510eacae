"""XP leaderboards: all-time, weekly and monthly."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.db.models import UserXP
from afterhours.exceptions import InvalidInputError

PERIOD_COLUMNS = {
    "all_time": UserXP.total_xp,
    "week": UserXP.xp_this_week,
    "month": UserXP.xp_this_month,
}


async def get_leaderboard(db: AsyncSession, period: str = "all_time", limit: int = 10) -> list[dict]:
    """Top ``limit`` users by XP for the period, ranked from 1. Ties share no rank."""
    column = PERIOD_COLUMNS.get(period)
    if column is None:
        raise InvalidInputError(f"Unknown leaderboard period: {period}")

    result = await db.execute(
        select(UserXP.user_id, column, UserXP.current_level)
        .order_by(column.desc(), UserXP.user_id)
        .limit(limit)
    )
    return [
        {"rank": rank, "user_id": user_id, "xp": xp, "level": level}
        for rank, (user_id, xp, level) in enumerate(result.all(), start=1)
    ]
