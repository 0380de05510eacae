"""Quest board and single-winner reward claims."""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.db.models import PartyQuest, QuestProgress
from afterhours.db.upsert import insert_if_absent
from afterhours.exceptions import InvalidInputError, NotFoundError
from afterhours.gamification.xp_service import add_xp

logger = logging.getLogger(__name__)


class ClaimOutcome(str, enum.Enum):
    CLAIMED = "claimed"
    ALREADY_CLAIMED = "already_claimed"
    NOT_COMPLETED = "not_completed"
    NO_PROGRESS = "no_progress"
    NOT_FOUND = "not_found"


def quest_state(quest: PartyQuest, progress: QuestProgress | None) -> str:
    """One of ``in_progress``, ``completed`` (claimable) or ``claimed``."""
    if progress is None:
        return "in_progress"
    if progress.claimed_at is not None:
        return "claimed"
    if progress.progress >= quest.requirement_value:
        return "completed"
    return "in_progress"


async def list_active_quests(db: AsyncSession, now: datetime) -> list[PartyQuest]:
    result = await db.execute(
        select(PartyQuest)
        .where(PartyQuest.is_active.is_(True), PartyQuest.expires_at > now)
        .order_by(PartyQuest.expires_at, PartyQuest.id)
    )
    return list(result.scalars().all())


async def get_progress(db: AsyncSession, user_id: str, quest_id: str) -> QuestProgress | None:
    result = await db.execute(
        select(QuestProgress).where(
            QuestProgress.user_id == user_id,
            QuestProgress.quest_id == quest_id,
        )
    )
    return result.scalar_one_or_none()


async def get_quest_board(db: AsyncSession, user_id: str, now: datetime) -> list[dict]:
    """Active quests with the user's progress and state."""
    quests = await list_active_quests(db, now)
    result = await db.execute(select(QuestProgress).where(QuestProgress.user_id == user_id))
    by_quest = {p.quest_id: p for p in result.scalars()}

    board = []
    for quest in quests:
        progress = by_quest.get(quest.id)
        board.append({
            "id": quest.id,
            "title": quest.title,
            "description": quest.description,
            "xp_reward": quest.xp_reward,
            "quest_type": quest.quest_type,
            "requirement_type": quest.requirement_type,
            "requirement_value": quest.requirement_value,
            "expires_at": quest.expires_at,
            "progress": progress.progress if progress else 0,
            "completed_at": progress.completed_at if progress else None,
            "claimed_at": progress.claimed_at if progress else None,
            "state": quest_state(quest, progress),
        })
    return board


async def attempt_claim(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    quest_id: str,
    now: datetime | None = None,
) -> ClaimOutcome:
    """Claim a completed quest's reward, at most once per user and quest.

    The claim itself is a single conditional UPDATE guarded by
    ``claimed_at IS NULL AND progress >= requirement``; of any number of
    concurrent callers exactly one sees rowcount 1. The XP award runs in the
    same transaction so claim and reward commit or roll back together.
    """
    now = now or datetime.now(timezone.utc)

    quest = await db.get(PartyQuest, quest_id)
    if quest is None:
        return ClaimOutcome.NOT_FOUND

    try:
        result = await db.execute(
            update(QuestProgress)
            .where(
                QuestProgress.user_id == user_id,
                QuestProgress.quest_id == quest_id,
                QuestProgress.claimed_at.is_(None),
                QuestProgress.progress >= quest.requirement_value,
            )
            .values(claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            outcome = await _explain_refusal(db, quest_id, user_id)
            await db.rollback()
            return outcome

        await add_xp(
            db,
            redis,
            user_id,
            quest.xp_reward,
            f"Quest completed: {quest.title}",
            source="quest",
            source_id=quest.id,
            idempotency_key=f"quest:{quest.id}:{user_id}",
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("User %s claimed quest %s (+%d XP)", user_id, quest_id, quest.xp_reward)
    return ClaimOutcome.CLAIMED


async def _explain_refusal(db: AsyncSession, quest_id: str, user_id: str) -> ClaimOutcome:
    result = await db.execute(
        select(QuestProgress)
        .where(QuestProgress.user_id == user_id, QuestProgress.quest_id == quest_id)
        .execution_options(populate_existing=True)
    )
    progress = result.scalar_one_or_none()
    if progress is None:
        return ClaimOutcome.NO_PROGRESS
    if progress.claimed_at is not None:
        return ClaimOutcome.ALREADY_CLAIMED
    return ClaimOutcome.NOT_COMPLETED


async def claim_quest(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    quest_id: str,
    now: datetime | None = None,
) -> bool:
    """True only for the call that actually claimed."""
    return await attempt_claim(db, redis, user_id, quest_id, now) is ClaimOutcome.CLAIMED


async def record_quest_progress(
    db: AsyncSession,
    user_id: str,
    quest_id: str,
    increment: int = 1,
    now: datetime | None = None,
) -> QuestProgress:
    """Atomically advance a user's progress on a quest.

    ``completed_at`` is stamped the first time progress reaches the
    requirement and is never moved afterwards.
    """
    if increment <= 0:
        raise InvalidInputError(f"Quest progress increment must be positive, got {increment}")
    now = now or datetime.now(timezone.utc)

    quest = await db.get(PartyQuest, quest_id)
    if quest is None:
        raise NotFoundError(f"Quest {quest_id} not found")

    try:
        if await get_progress(db, user_id, quest_id) is None:
            await insert_if_absent(db, QuestProgress(user_id=user_id, quest_id=quest_id, progress=0))

        await db.execute(
            update(QuestProgress)
            .where(QuestProgress.user_id == user_id, QuestProgress.quest_id == quest_id)
            .values(progress=QuestProgress.progress + increment)
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            update(QuestProgress)
            .where(
                QuestProgress.user_id == user_id,
                QuestProgress.quest_id == quest_id,
                QuestProgress.completed_at.is_(None),
                QuestProgress.progress >= quest.requirement_value,
            )
            .values(completed_at=now)
            .execution_options(synchronize_session=False)
        )
        progress = await get_progress(db, user_id, quest_id)
        await db.refresh(progress)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return progress  # type: ignore[return-value]
