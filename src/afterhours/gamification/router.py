"""Gamification API endpoints: XP, achievements, quests, leaderboard."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.auth.dependencies import CurrentUser, get_current_user, require_admin
from afterhours.config import get_settings
from afterhours.database import get_session
from afterhours.db.models import PartyQuest, UserXP
from afterhours.dependencies import get_redis_dep
from afterhours.exceptions import NotFoundError
from afterhours.gamification.achievement_service import (
    collect_achievement_stats,
    evaluate_achievements,
    list_achievements_for_user,
)
from afterhours.gamification.leaderboard import get_leaderboard
from afterhours.gamification.level_curve import level_info
from afterhours.gamification.quest_service import ClaimOutcome, attempt_claim, get_quest_board
from afterhours.gamification.schemas import (
    AchievementResponse,
    AchievementsResponse,
    AwardXPRequest,
    AwardXPResponse,
    ClaimResponse,
    EvaluateAchievementsResponse,
    LeaderboardEntry,
    LeaderboardResponse,
    LevelProgressResponse,
    NewAchievement,
    QuestBoardResponse,
    QuestResponse,
    XPHistoryEntry,
    XPHistoryResponse,
    XPResponse,
)
from afterhours.gamification.xp_service import award_xp, get_or_create_user_xp, get_xp_history

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


def _xp_response(xp: UserXP) -> XPResponse:
    return XPResponse(
        user_id=xp.user_id,
        total_xp=xp.total_xp,
        xp_this_week=xp.xp_this_week,
        xp_this_month=xp.xp_this_month,
        **level_info(xp.total_xp),
    )


async def _load_xp(db: AsyncSession, user_id: str) -> XPResponse:
    xp = await get_or_create_user_xp(db, user_id)
    await db.commit()
    return _xp_response(xp)


# ── Public endpoints ──


@router.get("/levels/progress", response_model=LevelProgressResponse)
async def level_progress(total_xp: int = Query(ge=0)):
    """Level curve lookup for an arbitrary XP total."""
    return LevelProgressResponse(total_xp=total_xp, **level_info(total_xp))


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    period: str = Query("all_time", pattern="^(all_time|week|month)$"),
    limit: int | None = Query(None, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    """Top users by XP."""
    entries = await get_leaderboard(db, period, limit or get_settings().leaderboard_size)
    return LeaderboardResponse(period=period, entries=[LeaderboardEntry(**e) for e in entries])


# ── XP ──


@router.get("/users/me/xp", response_model=XPResponse)
async def get_my_xp(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Get XP, level and progress for the caller."""
    return await _load_xp(db, user.user_id)


@router.get("/users/me/xp/history", response_model=XPHistoryResponse)
async def get_my_xp_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Get paginated XP history."""
    entries, total = await get_xp_history(db, user.user_id, page, per_page)
    return XPHistoryResponse(
        entries=[XPHistoryEntry.model_validate(e) for e in entries],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("/users/{user_id}/xp", response_model=AwardXPResponse)
async def award_user_xp(
    user_id: str,
    body: AwardXPRequest,
    _admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_redis_dep),
):
    """Admin XP award. A reused idempotency key awards nothing."""
    xp = await award_xp(
        db,
        redis,
        user_id,
        body.amount,
        body.reason,
        source="manual",
        idempotency_key=body.idempotency_key,
    )
    if xp is None:
        return AwardXPResponse(awarded=False, xp=await _load_xp(db, user_id))
    return AwardXPResponse(awarded=True, xp=_xp_response(xp))


# ── Achievements ──


@router.get("/achievements", response_model=AchievementsResponse)
async def list_achievements(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Full catalog; secret achievements stay hidden until earned."""
    items = await list_achievements_for_user(db, user.user_id)
    return AchievementsResponse(
        achievements=[AchievementResponse(**a) for a in items],
        total_available=len(items),
        total_earned=sum(1 for a in items if a["earned"]),
    )


@router.post("/users/me/achievements/evaluate", response_model=EvaluateAchievementsResponse)
async def evaluate_my_achievements(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_redis_dep),
):
    """Recompute the caller's stats and award any newly met achievements."""
    stats = await collect_achievement_stats(db, user.user_id)
    earned = await evaluate_achievements(db, redis, user.user_id, stats)
    return EvaluateAchievementsResponse(
        stats=stats,
        newly_earned=[
            NewAchievement(
                id=ua.achievement_id,
                name=ua.achievement.name,
                xp_reward=ua.achievement.xp_reward,
                earned_at=ua.earned_at,
            )
            for ua in earned
        ],
    )


# ── Quests ──


@router.get("/quests", response_model=QuestBoardResponse)
async def list_quests(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Active quests with the caller's progress."""
    board = await get_quest_board(db, user.user_id, datetime.now(timezone.utc))
    return QuestBoardResponse(quests=[QuestResponse(**q) for q in board])


@router.post("/quests/{quest_id}/claim", response_model=ClaimResponse)
async def claim(
    quest_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_redis_dep),
):
    """Claim a completed quest. Claiming twice is a harmless no-op."""
    outcome = await attempt_claim(db, redis, user.user_id, quest_id)
    if outcome is ClaimOutcome.NOT_FOUND:
        raise NotFoundError("Quest not found")
    if outcome in (ClaimOutcome.NOT_COMPLETED, ClaimOutcome.NO_PROGRESS):
        raise HTTPException(status_code=409, detail="Quest not completed yet")

    quest = await db.get(PartyQuest, quest_id)
    return ClaimResponse(
        status=outcome.value,
        quest_id=quest_id,
        xp_awarded=quest.xp_reward if outcome is ClaimOutcome.CLAIMED and quest else 0,
        xp=await _load_xp(db, user.user_id),
    )
