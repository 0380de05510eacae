"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from afterhours.config import get_settings
from afterhours.database import close_db, get_session_factory, init_db
from afterhours.engagement.router import public_router as flex_public_router
from afterhours.engagement.router import router as engagement_router
from afterhours.gamification.router import router as gamification_router
from afterhours.gamification.seed import seed_achievements
from afterhours.health.router import router as health_router
from afterhours.middleware import setup_middleware
from afterhours.recaps.router import router as recaps_router
from afterhours.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Seed the achievement catalog (idempotent)
    try:
        async with get_session_factory()() as db:
            await seed_achievements(db)
    except Exception:
        logger.warning("Achievement seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Afterhours Engagement API",
        description="XP, achievements, quests, streaks and weekly recaps for the Afterhours nightlife app",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(gamification_router)
    app.include_router(engagement_router)
    app.include_router(recaps_router)
    app.include_router(flex_public_router)

    return app


app = create_app()
