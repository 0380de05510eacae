"""Weekly recap endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.auth.dependencies import CurrentUser, ensure_can_act_for, get_current_user
from afterhours.database import get_session
from afterhours.dependencies import get_redis_dep
from afterhours.exceptions import ForbiddenError, NotFoundError
from afterhours.recaps.recap_service import generate_weekly_recaps, get_latest_recap
from afterhours.recaps.schemas import (
    WeeklyRecapRequest,
    WeeklyRecapResponse,
    WeeklyRecapRunResponse,
    WeekWindow,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["Recaps"])


@router.post("/recaps/weekly", response_model=WeeklyRecapRunResponse)
async def trigger_weekly_recap(
    body: WeeklyRecapRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_redis_dep),
):
    """Generate last week's recaps.

    Batch mode, or a ``userId`` other than the caller, needs admin or the
    scheduler role. With neither, the caller's own recap is generated.
    """
    body = body or WeeklyRecapRequest()
    try:
        ensure_can_act_for(user, body.user_id, body.batch_mode)
    except ForbiddenError:
        logger.warning(
            "recap_forbidden",
            caller=user.user_id,
            target=body.user_id,
            batch_mode=body.batch_mode,
        )
        raise

    if body.user_id is not None:
        targets: list[str] | None = [body.user_id]
    elif body.batch_mode:
        targets = None
    else:
        targets = [user.user_id]

    logger.info("recap_triggered", caller=user.user_id, target=body.user_id, batch_mode=body.batch_mode)
    result = await generate_weekly_recaps(db, redis, targets)
    return WeeklyRecapRunResponse(
        success=True,
        processed=result.processed,
        successful=result.successful,
        skipped=result.skipped,
        failures=result.failures,
        week=WeekWindow(start=result.week_start, end=result.week_end),
    )


@router.get("/users/me/recaps/latest", response_model=WeeklyRecapResponse)
async def get_my_latest_recap(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    recap = await get_latest_recap(db, user.user_id)
    if recap is None:
        raise NotFoundError("No recap yet")
    return WeeklyRecapResponse.model_validate(recap)
