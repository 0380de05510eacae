"""XP ledger: atomic increments, idempotent awards and level-up detection."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.db.models import UserXP, XPEvent
from afterhours.db.upsert import insert_if_absent
from afterhours.exceptions import InvalidInputError
from afterhours.gamification.level_curve import compute_level
from afterhours.redis_client import publish_event

logger = logging.getLogger(__name__)


async def get_or_create_user_xp(db: AsyncSession, user_id: str) -> UserXP:
    """Get or lazily create the XP row for a user."""
    xp = await db.get(UserXP, user_id)
    if xp is None:
        await insert_if_absent(
            db, UserXP(user_id=user_id, updated_at=datetime.now(timezone.utc))
        )
        # Either our insert or a concurrent one; both are visible now
        xp = await db.get(UserXP, user_id)
    return xp  # type: ignore[return-value]


async def add_xp(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    amount: int,
    reason: str | None = None,
    *,
    source: str = "manual",
    source_id: str | None = None,
    idempotency_key: str | None = None,
) -> UserXP | None:
    """Add XP to a user inside the caller's transaction.

    Returns the refreshed UserXP row, or None if ``idempotency_key`` was
    already used (nothing is awarded twice).

    1. Record the award in xp_events (insert-if-absent when keyed)
    2. Increment totals with a server-side UPDATE (no lost updates)
    3. Re-read the total under the row lock and store the derived level
    4. Broadcast level_up if the level changed
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise InvalidInputError(f"XP amount must be a non-negative integer, got {amount!r}")

    now = datetime.now(timezone.utc)
    event = XPEvent(
        user_id=user_id,
        amount=amount,
        source=source,
        source_id=source_id,
        reason=reason,
        idempotency_key=idempotency_key,
        created_at=now,
    )
    if idempotency_key is not None:
        if not await insert_if_absent(db, event):
            logger.info("Skipping duplicate XP award %s", idempotency_key)
            return None
    else:
        db.add(event)

    xp = await get_or_create_user_xp(db, user_id)

    await db.execute(
        update(UserXP)
        .where(UserXP.user_id == user_id)
        .values(
            total_xp=UserXP.total_xp + amount,
            xp_this_week=UserXP.xp_this_week + amount,
            xp_this_month=UserXP.xp_this_month + amount,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    total = (
        await db.execute(select(UserXP.total_xp).where(UserXP.user_id == user_id))
    ).scalar_one()

    old_level = compute_level(total - amount)
    new_level = compute_level(total)
    await db.execute(
        update(UserXP)
        .where(UserXP.user_id == user_id)
        .values(current_level=new_level)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(xp)

    if new_level > old_level:
        await _emit_level_up(redis, user_id, old_level, new_level)

    return xp


async def award_xp(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    amount: int,
    reason: str | None = None,
    **kwargs: object,
) -> UserXP | None:
    """add_xp() followed by commit, for callers that own no other writes."""
    try:
        xp = await add_xp(db, redis, user_id, amount, reason, **kwargs)  # type: ignore[arg-type]
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return xp


async def _emit_level_up(
    redis: object | None,
    user_id: str,
    old_level: int,
    new_level: int,
) -> None:
    """Broadcast the level change for live overlays."""
    logger.info("User %s levelled up: %d -> %d", user_id, old_level, new_level)
    await publish_event(
        redis,
        "pubsub:level_up",
        json.dumps({"user_id": user_id, "old_level": old_level, "new_level": new_level}),
    )


async def reset_period_xp(db: AsyncSession, period: str) -> int:
    """Zero the weekly or monthly XP counters. Returns rows touched."""
    if period == "week":
        values = {"xp_this_week": 0}
    elif period == "month":
        values = {"xp_this_month": 0}
    else:
        raise InvalidInputError(f"Unknown XP period: {period}")

    result = await db.execute(update(UserXP).values(**values))
    await db.commit()
    logger.info("Reset %s XP for %d users", period, result.rowcount)
    return result.rowcount


async def get_xp_history(
    db: AsyncSession,
    user_id: str,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[XPEvent], int]:
    """Paginated XP events, most recent first."""
    total = (
        await db.execute(
            select(func.count()).select_from(XPEvent).where(XPEvent.user_id == user_id)
        )
    ).scalar_one()

    result = await db.execute(
        select(XPEvent)
        .where(XPEvent.user_id == user_id)
        .order_by(XPEvent.created_at.desc(), XPEvent.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total
