"""Quest progress and single-winner claims."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.db.models import PartyQuest, QuestProgress, UserXP, XPEvent
from afterhours.exceptions import InvalidInputError, NotFoundError
from afterhours.gamification.level_curve import level_info
from afterhours.gamification.quest_service import (
    ClaimOutcome,
    attempt_claim,
    claim_quest,
    get_quest_board,
    record_quest_progress,
)

NOW = datetime(2026, 10, 14, 20, 0, tzinfo=timezone.utc)


def _quest(quest_id: str = "weekend-warrior", **overrides) -> PartyQuest:
    fields = {
        "id": quest_id,
        "title": "Weekend Warrior",
        "description": "Go out three times this week",
        "xp_reward": 100,
        "quest_type": "weekly",
        "requirement_type": "events_attended",
        "requirement_value": 3,
        "is_active": True,
        "expires_at": NOW + timedelta(days=4),
    }
    fields.update(overrides)
    return PartyQuest(**fields)


@pytest_asyncio.fixture
async def quest(add_rows) -> str:
    await add_rows(_quest())
    return "weekend-warrior"


@pytest_asyncio.fixture
async def completed_quest(add_rows, quest) -> str:
    await add_rows(QuestProgress(user_id="user-1", quest_id=quest, progress=3, completed_at=NOW))
    return quest


class TestRecordProgress:
    @pytest.mark.asyncio
    async def test_creates_row_and_increments(self, db_session: AsyncSession, quest):
        progress = await record_quest_progress(db_session, "user-1", quest, now=NOW)
        assert progress.progress == 1
        assert progress.completed_at is None

        progress = await record_quest_progress(db_session, "user-1", quest, increment=2, now=NOW)
        assert progress.progress == 3
        assert progress.completed_at is not None

    @pytest.mark.asyncio
    async def test_completed_at_is_not_moved(self, db_session: AsyncSession, quest):
        await record_quest_progress(db_session, "user-1", quest, increment=3, now=NOW)
        first = (await record_quest_progress(db_session, "user-1", quest, now=NOW)).completed_at
        later = await record_quest_progress(db_session, "user-1", quest, now=NOW + timedelta(hours=5))
        assert later.progress == 5
        assert later.completed_at == first

    @pytest.mark.asyncio
    async def test_rejects_non_positive_increment(self, db_session: AsyncSession, quest):
        with pytest.raises(InvalidInputError):
            await record_quest_progress(db_session, "user-1", quest, increment=0)

    @pytest.mark.asyncio
    async def test_unknown_quest(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await record_quest_progress(db_session, "user-1", "nope")


class TestAttemptClaim:
    @pytest.mark.asyncio
    async def test_claim_awards_quest_xp(self, db_session: AsyncSession, completed_quest):
        """A 0 XP user claiming a 100 XP quest lands at level 1, 50/150 (33%)."""
        outcome = await attempt_claim(db_session, None, "user-1", completed_quest, now=NOW)
        assert outcome is ClaimOutcome.CLAIMED

        xp = await db_session.get(UserXP, "user-1")
        assert xp.total_xp == 100
        info = level_info(xp.total_xp)
        assert (info["level"], info["current"], info["needed"], info["percentage"]) == (1, 50, 150, 33)

    @pytest.mark.asyncio
    async def test_second_claim_is_noop(self, db_session: AsyncSession, completed_quest):
        await attempt_claim(db_session, None, "user-1", completed_quest, now=NOW)
        outcome = await attempt_claim(db_session, None, "user-1", completed_quest, now=NOW)

        assert outcome is ClaimOutcome.ALREADY_CLAIMED
        xp = await db_session.get(UserXP, "user-1")
        await db_session.refresh(xp)
        assert xp.total_xp == 100

    @pytest.mark.asyncio
    async def test_exactly_one_winner_across_sessions(self, session_factory, completed_quest):
        async with session_factory() as s1, session_factory() as s2:
            results = [
                await claim_quest(s1, None, "user-1", completed_quest, now=NOW),
                await claim_quest(s2, None, "user-1", completed_quest, now=NOW),
            ]
        assert sorted(results) == [False, True]

        async with session_factory() as db:
            xp = await db.get(UserXP, "user-1")
            assert xp.total_xp == 100
            events = await db.execute(
                select(func.count()).select_from(XPEvent).where(XPEvent.source == "quest")
            )
            assert events.scalar_one() == 1

    @pytest.mark.asyncio
    async def test_incomplete_quest(self, db_session: AsyncSession, add_rows, quest):
        await add_rows(QuestProgress(user_id="user-1", quest_id=quest, progress=2))
        outcome = await attempt_claim(db_session, None, "user-1", quest, now=NOW)
        assert outcome is ClaimOutcome.NOT_COMPLETED
        assert await db_session.get(UserXP, "user-1") is None

    @pytest.mark.asyncio
    async def test_no_progress(self, db_session: AsyncSession, quest):
        assert await attempt_claim(db_session, None, "user-2", quest) is ClaimOutcome.NO_PROGRESS

    @pytest.mark.asyncio
    async def test_unknown_quest(self, db_session: AsyncSession):
        assert await attempt_claim(db_session, None, "user-1", "nope") is ClaimOutcome.NOT_FOUND


class TestQuestBoard:
    @pytest.mark.asyncio
    async def test_active_quests_with_state(self, db_session: AsyncSession, add_rows, completed_quest):
        await add_rows(
            _quest("expired", expires_at=NOW - timedelta(days=1)),
            _quest("disabled", is_active=False),
            _quest("fresh", expires_at=NOW + timedelta(days=1)),
        )

        board = await get_quest_board(db_session, "user-1", NOW)
        assert [q["id"] for q in board] == ["fresh", "weekend-warrior"]
        states = {q["id"]: (q["state"], q["progress"]) for q in board}
        assert states == {"fresh": ("in_progress", 0), "weekend-warrior": ("completed", 3)}

        await attempt_claim(db_session, None, "user-1", completed_quest, now=NOW)
        board = await get_quest_board(db_session, "user-1", NOW)
        assert {q["id"]: q["state"] for q in board}["weekend-warrior"] == "claimed"
