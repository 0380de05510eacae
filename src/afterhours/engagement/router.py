"""Timeline, streak, milestone and flex-card endpoints."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.auth.dependencies import CurrentUser, get_current_user
from afterhours.database import get_session
from afterhours.db.models import FlexCard, Milestone
from afterhours.dependencies import get_redis_dep
from afterhours.engagement.flex_cards import (
    generate_flex_card,
    get_public_flex_card,
    list_flex_cards,
    share_url,
)
from afterhours.engagement.milestones import (
    list_milestones,
    milestone_label,
    milestone_progress,
    next_milestone,
    pop_unnotified_milestones,
)
from afterhours.engagement.schemas import (
    FlexCardCreate,
    FlexCardResponse,
    FlexCardsResponse,
    MilestoneResponse,
    MilestonesResponse,
    StreakResponse,
    TimelineEntryCreate,
    TimelineEntryResponse,
    TimelineEntryUpdate,
    TimelineResponse,
    TimelineStatsResponse,
)
from afterhours.engagement.stats import TimelineStats, compute_stats
from afterhours.engagement.streak_service import refresh_user_streak
from afterhours.engagement.timeline_service import (
    add_timeline_entry,
    list_timeline,
    set_entry_visibility,
    update_highlight,
)
from afterhours.exceptions import InvalidInputError, NotFoundError

router = APIRouter(prefix="/api/v1", tags=["Engagement"])
public_router = APIRouter(tags=["Flex"])


def _stats_response(stats: TimelineStats) -> TimelineStatsResponse:
    return TimelineStatsResponse(**asdict(stats))


def _card_response(card: FlexCard) -> FlexCardResponse:
    return FlexCardResponse(
        card_type=card.card_type,
        title=card.title,
        subtitle=card.subtitle,
        stats=card.stats,
        share_code=card.share_code,
        share_url=share_url(card.share_code),
        is_public=card.is_public,
        created_at=card.created_at,
    )


def _milestone_response(m: Milestone) -> MilestoneResponse:
    return MilestoneResponse(
        milestone_type=m.milestone_type,
        milestone_value=m.milestone_value,
        label=milestone_label(m.milestone_type, m.milestone_value),
        achieved_at=m.achieved_at,
    )


# ── Timeline ──


@router.get("/users/me/timeline", response_model=TimelineResponse)
async def get_my_timeline(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """All of the caller's nights out plus computed stats."""
    entries = await list_timeline(db, user.user_id, viewer_id=user.user_id)
    return TimelineResponse(
        entries=[TimelineEntryResponse.model_validate(e) for e in entries],
        stats=_stats_response(compute_stats(entries, datetime.now(timezone.utc))),
    )


@router.post("/users/me/timeline", response_model=TimelineEntryResponse, status_code=201)
async def add_to_my_timeline(
    body: TimelineEntryCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_redis_dep),
):
    """Append a night out and refresh the caller's streak."""
    entry = await add_timeline_entry(db, user.user_id, **body.model_dump())
    await refresh_user_streak(db, redis, user.user_id)
    return TimelineEntryResponse.model_validate(entry)


@router.patch("/users/me/timeline/{entry_id}", status_code=204)
async def update_my_timeline_entry(
    entry_id: int,
    body: TimelineEntryUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Edit the highlight or visibility of one of the caller's entries."""
    fields = body.model_dump(exclude_unset=True)
    if fields.get("is_public") is None:
        fields.pop("is_public", None)
    if not fields:
        raise InvalidInputError("Nothing to update")

    updated = True
    if "highlight_moment" in fields:
        updated = await update_highlight(db, user.user_id, entry_id, fields["highlight_moment"])
    if updated and "is_public" in fields:
        updated = await set_entry_visibility(db, user.user_id, entry_id, fields["is_public"])
    if not updated:
        raise NotFoundError("Timeline entry not found")


# ── Streak & milestones ──


@router.get("/users/me/streak", response_model=StreakResponse)
async def get_my_streak(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_redis_dep),
):
    """Recompute and return the caller's streak."""
    refreshed = await refresh_user_streak(db, redis, user.user_id)
    streak = refreshed.streak
    return StreakResponse(
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        last_activity_date=streak.last_activity_date,
        total_events_attended=streak.total_events_attended,
        events_this_month=streak.events_this_month,
        next_events_milestone=next_milestone("events_attended", streak.total_events_attended),
        events_milestone_progress=milestone_progress("events_attended", streak.total_events_attended),
        next_streak_milestone=next_milestone("streak", streak.current_streak),
        streak_milestone_progress=milestone_progress("streak", streak.current_streak),
        stats=_stats_response(refreshed.stats),
    )


@router.get("/users/me/milestones", response_model=MilestonesResponse)
async def get_my_milestones(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """All milestones, plus the ones the caller has not been shown yet."""
    fresh = await pop_unnotified_milestones(db, user.user_id)
    return MilestonesResponse(
        milestones=[_milestone_response(m) for m in await list_milestones(db, user.user_id)],
        newly_notified=[_milestone_response(m) for m in fresh],
    )


# ── Flex cards ──


@router.post("/users/me/flex-cards", response_model=FlexCardResponse, status_code=201)
async def create_flex_card(
    body: FlexCardCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Snapshot the caller's stats into a shareable card."""
    card = await generate_flex_card(db, user.user_id, body.card_type, is_public=body.is_public)
    return _card_response(card)


@router.get("/users/me/flex-cards", response_model=FlexCardsResponse)
async def get_my_flex_cards(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return FlexCardsResponse(cards=[_card_response(c) for c in await list_flex_cards(db, user.user_id)])


@public_router.get("/flex/{share_code}", response_model=FlexCardResponse)
async def get_shared_flex_card(share_code: str, db: AsyncSession = Depends(get_session)):
    """Public card lookup. Private and missing cards are both 404."""
    card = await get_public_flex_card(db, share_code)
    if card is None:
        raise NotFoundError("Flex card not found")
    return _card_response(card)
