"""Shareable flex cards built from timeline stats.

Share codes are URL-safe tokens from a cryptographic random source. A card
that is missing or private looks the same to the public lookup (None -> 404)
so codes cannot be probed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.config import get_settings
from afterhours.db.models import FlexCard
from afterhours.db.upsert import insert_if_absent
from afterhours.engagement.stats import TimelineStats, compute_stats
from afterhours.engagement.streak_service import load_timeline
from afterhours.engagement.week_utils import get_monday
from afterhours.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

CARD_TYPES = ("weekly_recap", "monthly_stats", "milestone", "streak")
MAX_SHARE_CODE_ATTEMPTS = 10


def build_flex_card(card_type: str, stats: TimelineStats, now: datetime) -> tuple[str, str, dict]:
    """Return (title, subtitle, stats) for a card of ``card_type``."""
    if card_type == "weekly_recap":
        monday = get_monday(now)
        return (
            f"{stats.this_week.nights} Nights This Week",
            f"+{stats.this_week.rep} Rep earned",
            {
                "nights": stats.this_week.nights,
                "rep": stats.this_week.rep,
                "week": f"Week of {monday:%b} {monday.day}",
            },
        )
    if card_type == "monthly_stats":
        return (
            f"{stats.this_month.nights} Nights in {now:%B}",
            f"{len(stats.cities_visited)} cities explored",
            {
                "nights": stats.this_month.nights,
                "rep": stats.this_month.rep,
                "cities": len(stats.cities_visited),
                "month": f"{now:%B %Y}",
            },
        )
    if card_type == "milestone":
        return (
            f"{stats.total_nights} Nights Total",
            "Party Legend in the making",
            {
                "totalNights": stats.total_nights,
                "totalHours": round(stats.total_hours),
                "totalRep": stats.total_rep,
            },
        )
    if card_type == "streak":
        return (
            f"{stats.current_streak} Week Streak! 🔥",
            f"{stats.longest_streak} weeks is your best",
            {
                "currentStreak": stats.current_streak,
                "longestStreak": stats.longest_streak,
            },
        )
    raise InvalidInputError(f"Unknown card type: {card_type}")


def generate_share_code() -> str:
    return secrets.token_urlsafe(get_settings().share_code_bytes)


def share_url(share_code: str) -> str:
    return f"{get_settings().public_base_url.rstrip('/')}/flex/{share_code}"


async def generate_flex_card(
    db: AsyncSession,
    user_id: str,
    card_type: str,
    now: datetime | None = None,
    is_public: bool = True,
) -> FlexCard:
    """Snapshot the user's current stats into a new card with a unique share code."""
    if card_type not in CARD_TYPES:
        raise InvalidInputError(f"Unknown card type: {card_type}")
    if now is None:
        now = datetime.now(timezone.utc)

    stats = compute_stats(await load_timeline(db, user_id), now)
    title, subtitle, card_stats = build_flex_card(card_type, stats, now)

    for _ in range(MAX_SHARE_CODE_ATTEMPTS):
        card = FlexCard(
            user_id=user_id,
            card_type=card_type,
            title=title,
            subtitle=subtitle,
            stats=card_stats,
            share_code=generate_share_code(),
            is_public=is_public,
            created_at=now,
        )
        if await insert_if_absent(db, card):
            await db.commit()
            logger.info("User %s generated %s flex card %s", user_id, card_type, card.share_code)
            return card

    await db.rollback()
    raise RuntimeError(f"Failed to generate unique share code after {MAX_SHARE_CODE_ATTEMPTS} attempts")


async def list_flex_cards(db: AsyncSession, user_id: str) -> list[FlexCard]:
    result = await db.execute(
        select(FlexCard)
        .where(FlexCard.user_id == user_id)
        .order_by(FlexCard.created_at.desc(), FlexCard.id.desc())
    )
    return list(result.scalars().all())


async def get_public_flex_card(db: AsyncSession, share_code: str) -> FlexCard | None:
    """Look up a card by share code.

    Returns None (-> 404) if the card does not exist OR is not public.
    """
    result = await db.execute(select(FlexCard).where(FlexCard.share_code == share_code))
    card = result.scalar_one_or_none()
    if card is None or not card.is_public:
        return None
    return card
