"""Engagement arq worker: weekly recaps and XP period resets.

Run with ``arq afterhours.workers.settings.WorkerSettings``.
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from arq import cron
from arq.connections import RedisSettings

from afterhours.config import get_settings
from afterhours.database import close_db, get_session_factory, init_db
from afterhours.gamification.xp_service import reset_period_xp
from afterhours.middleware.logging import setup_logging
from afterhours.recaps.recap_service import generate_weekly_recaps

logger = logging.getLogger(__name__)


async def engagement_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize Redis + DB connections on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)
    ctx["redis"] = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=10,
    )
    logger.info("Engagement worker started")


async def engagement_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    redis_client: aioredis.Redis | None = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("Engagement worker shut down")


async def weekly_recap_job(ctx: dict) -> dict:  # type: ignore[type-arg]
    """Scheduled arq task: every Monday 02:00 UTC, batch recaps for last week.

    Safe to re-run: users that already have a recap are skipped.
    """
    async with get_session_factory()() as db:
        result = await generate_weekly_recaps(db, ctx.get("redis"))
    return {
        "week_start": result.week_start.isoformat(),
        "processed": result.processed,
        "successful": result.successful,
        "skipped": result.skipped,
        "failures": len(result.failures),
    }


async def reset_weekly_xp(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled arq task: Monday 00:00 UTC."""
    async with get_session_factory()() as db:
        return await reset_period_xp(db, "week")


async def reset_monthly_xp(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled arq task: 1st of the month 00:00 UTC."""
    async with get_session_factory()() as db:
        return await reset_period_xp(db, "month")


class EngagementWorkerSettings:
    """arq worker settings for the engagement scheduler."""

    functions = [weekly_recap_job, reset_weekly_xp, reset_monthly_xp]
    cron_jobs = [
        cron(weekly_recap_job, weekday=0, hour=2, minute=0),  # Monday 02:00 UTC
        cron(reset_weekly_xp, weekday=0, hour=0, minute=0),
        cron(reset_monthly_xp, day=1, hour=0, minute=0),
    ]
    on_startup = engagement_startup
    on_shutdown = engagement_shutdown
    max_jobs = 4
    job_timeout = 1800  # batch recaps touch every active user
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
