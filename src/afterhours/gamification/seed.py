"""Achievement seed data across the five catalog categories."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.db.models import Achievement

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Explorer
    {
        "id": "first_night_out",
        "name": "First Night Out",
        "description": "Check in to your first event",
        "icon": "🎉",
        "xp_reward": 50,
        "category": "explorer",
        "requirement_type": "events_attended",
        "requirement_value": 1,
        "sort_order": 1,
    },
    {
        "id": "city_hopper",
        "name": "City Hopper",
        "description": "Party in 3 different cities",
        "icon": "🗺️",
        "xp_reward": 150,
        "category": "explorer",
        "requirement_type": "cities_visited",
        "requirement_value": 3,
        "sort_order": 2,
    },
    {
        "id": "globetrotter",
        "name": "Globetrotter",
        "description": "Party in 10 different cities",
        "icon": "✈️",
        "xp_reward": 500,
        "category": "explorer",
        "requirement_type": "cities_visited",
        "requirement_value": 10,
        "sort_order": 3,
    },
    {
        "id": "regular",
        "name": "Regular",
        "description": "Attend 10 events",
        "icon": "🍸",
        "xp_reward": 200,
        "category": "explorer",
        "requirement_type": "events_attended",
        "requirement_value": 10,
        "sort_order": 4,
    },
    # Social
    {
        "id": "making_friends",
        "name": "Making Friends",
        "description": "Follow 5 people",
        "icon": "👋",
        "xp_reward": 50,
        "category": "social",
        "requirement_type": "following",
        "requirement_value": 5,
        "sort_order": 10,
    },
    {
        "id": "crowd_favorite",
        "name": "Crowd Favorite",
        "description": "Get 25 followers",
        "icon": "👯",
        "xp_reward": 250,
        "category": "social",
        "requirement_type": "followers",
        "requirement_value": 25,
        "sort_order": 11,
    },
    {
        "id": "show_off",
        "name": "Show Off",
        "description": "Create 5 flex cards",
        "icon": "📸",
        "xp_reward": 100,
        "category": "social",
        "requirement_type": "flex_cards",
        "requirement_value": 5,
        "sort_order": 12,
    },
    # Loyalty
    {
        "id": "on_a_roll",
        "name": "On a Roll",
        "description": "Reach a 3 week party streak",
        "icon": "🔥",
        "xp_reward": 100,
        "category": "loyalty",
        "requirement_type": "streak",
        "requirement_value": 3,
        "sort_order": 20,
    },
    {
        "id": "unstoppable",
        "name": "Unstoppable",
        "description": "Reach a 10 week party streak",
        "icon": "⚡",
        "xp_reward": 400,
        "category": "loyalty",
        "requirement_type": "streak",
        "requirement_value": 10,
        "sort_order": 21,
    },
    {
        "id": "rep_collector",
        "name": "Rep Collector",
        "description": "Earn 500 rep from nights out",
        "icon": "💎",
        "xp_reward": 200,
        "category": "loyalty",
        "requirement_type": "total_rep",
        "requirement_value": 500,
        "sort_order": 22,
    },
    # Pioneer
    {
        "id": "first_host",
        "name": "First Host",
        "description": "Host your first event",
        "icon": "⭐",
        "xp_reward": 150,
        "category": "pioneer",
        "requirement_type": "events_hosted",
        "requirement_value": 1,
        "sort_order": 30,
    },
    {
        "id": "party_planner",
        "name": "Party Planner",
        "description": "Host 5 events",
        "icon": "📋",
        "xp_reward": 300,
        "category": "pioneer",
        "requirement_type": "events_hosted",
        "requirement_value": 5,
        "sort_order": 31,
    },
    # Legendary
    {
        "id": "party_legend",
        "name": "Party Legend",
        "description": "Attend 100 events",
        "icon": "👑",
        "xp_reward": 1000,
        "category": "legendary",
        "requirement_type": "events_attended",
        "requirement_value": 100,
        "sort_order": 40,
    },
    {
        "id": "night_owl_elite",
        "name": "Night Owl Elite",
        "description": "Reach 10,000 total XP",
        "icon": "🦉",
        "xp_reward": 500,
        "category": "legendary",
        "requirement_type": "total_xp",
        "requirement_value": 10_000,
        "is_secret": True,
        "sort_order": 41,
    },
    {
        "id": "year_of_nights",
        "name": "Year of Nights",
        "description": "Keep a 52 week party streak",
        "icon": "🏆",
        "xp_reward": 2000,
        "category": "legendary",
        "requirement_type": "streak",
        "requirement_value": 52,
        "is_secret": True,
        "sort_order": 42,
    },
]


async def seed_achievements(db: AsyncSession) -> int:
    """Upsert the achievement catalog by id. Returns number of achievements seeded."""
    seeded = 0
    for data in ACHIEVEMENT_SEED_DATA:
        await db.merge(Achievement(**{"is_secret": False, **data}))
        seeded += 1

    await db.commit()
    logger.info("Seeded %d achievement definitions", seeded)
    return seeded
