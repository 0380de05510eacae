"""Liveness, readiness and version probes."""

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.config import get_settings
from afterhours.database import get_session
from afterhours.db.models import Achievement
from afterhours.redis_client import get_redis

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Check the database (and that the achievement catalog is seeded) and Redis.

    Redis only carries broadcasts, so a Redis failure reports ``degraded``
    rather than failing the probe.
    """
    checks: dict[str, object] = {}

    try:
        catalog_size = (await db.execute(select(func.count()).select_from(Achievement))).scalar_one()
        checks["database"] = "ok"
        checks["achievement_catalog"] = "ok" if catalog_size else "empty"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    try:
        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as exc:
        checks["redis"] = f"error: {exc}"

    status = "ready" if all(value == "ok" for value in checks.values()) else "degraded"
    return {"status": status, "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {"version": settings.app_version, "environment": settings.environment}
