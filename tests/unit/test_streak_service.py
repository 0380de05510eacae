"""Streak refresh and milestone recording."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.db.models import Event, Milestone, PushToken, TimelineEntry, UserConnection
from afterhours.engagement.milestones import (
    insert_milestone,
    list_milestones,
    pop_unnotified_milestones,
    record_reached_milestones,
)
from afterhours.engagement.streak_service import refresh_user_streak

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def _night(user_id: str, d: date, city: str = "Berlin") -> TimelineEntry:
    return TimelineEntry(
        user_id=user_id,
        event_name="Night out",
        event_city=city,
        attended_date=d,
        created_at=NOW,
    )


class TestMilestoneRecording:
    @pytest.mark.asyncio
    async def test_insert_is_deduplicated(self, db_session: AsyncSession):
        assert await insert_milestone(db_session, "user-1", "streak", 3, NOW) is True
        assert await insert_milestone(db_session, "user-1", "streak", 3, NOW) is False
        await db_session.commit()

        count = await db_session.execute(select(func.count()).select_from(Milestone))
        assert count.scalar_one() == 1

    @pytest.mark.asyncio
    async def test_records_every_reached_threshold_once(self, db_session: AsyncSession):
        new = await record_reached_milestones(db_session, "user-1", {"events_attended": 12}, NOW)
        assert new == [("events_attended", 1), ("events_attended", 5), ("events_attended", 10)]

        again = await record_reached_milestones(db_session, "user-1", {"events_attended": 12}, NOW)
        assert again == []

    @pytest.mark.asyncio
    async def test_pop_unnotified_marks_them(self, db_session: AsyncSession):
        await record_reached_milestones(db_session, "user-1", {"hosted": 5}, NOW)
        await db_session.commit()

        first = await pop_unnotified_milestones(db_session, "user-1")
        second = await pop_unnotified_milestones(db_session, "user-1")
        assert [(m.milestone_type, m.milestone_value) for m in first] == [("hosted", 1), ("hosted", 5)]
        assert second == []
        assert len(await list_milestones(db_session, "user-1")) == 2


class TestRefreshUserStreak:
    @pytest.mark.asyncio
    async def test_snapshot_from_timeline(self, db_session: AsyncSession, add_rows):
        await add_rows(
            _night("user-1", date(2026, 10, 17)),
            _night("user-1", date(2026, 10, 11)),
            _night("user-1", date(2026, 10, 4)),
            _night("user-1", date(2026, 9, 1)),
        )

        refreshed = await refresh_user_streak(db_session, None, "user-1", now=NOW)
        streak = refreshed.streak
        assert streak.current_streak == 3
        assert streak.longest_streak == 3
        assert streak.total_events_attended == 4
        assert streak.events_this_month == 3
        assert streak.last_activity_date == date(2026, 10, 17)
        assert ("streak", 3) in refreshed.new_milestones
        assert ("events_attended", 1) in refreshed.new_milestones

    @pytest.mark.asyncio
    async def test_longest_never_below_current(self, db_session: AsyncSession, add_rows):
        await add_rows(_night("user-1", date(2026, 10, 17)))
        streak = (await refresh_user_streak(db_session, None, "user-1", now=NOW)).streak
        assert streak.longest_streak >= streak.current_streak

    @pytest.mark.asyncio
    async def test_milestones_not_duplicated_on_refresh(self, db_session: AsyncSession, add_rows):
        await add_rows(_night("user-1", date(2026, 10, 17)))
        first = await refresh_user_streak(db_session, None, "user-1", now=NOW)
        second = await refresh_user_streak(db_session, None, "user-1", now=NOW)

        assert first.new_milestones == [("events_attended", 1)]
        assert second.new_milestones == []

    @pytest.mark.asyncio
    async def test_social_milestones(self, db_session: AsyncSession, add_rows):
        await add_rows(
            *[UserConnection(follower_id="user-1", following_id=f"friend-{i}", status="active") for i in range(5)],
            Event(id="ev-1", host_id="user-1", name="Launch", type="club", city="Berlin"),
        )
        refreshed = await refresh_user_streak(db_session, None, "user-1", now=NOW)
        assert ("friends", 5) in refreshed.new_milestones
        assert ("hosted", 1) in refreshed.new_milestones

    @pytest.mark.asyncio
    async def test_new_milestones_announced_and_pushed(
        self,
        db_session: AsyncSession,
        add_rows,
        fake_redis,
        push_service,
        push_provider,
    ):
        await add_rows(
            _night("user-1", date(2026, 10, 17)),
            PushToken(user_id="user-1", token="device-1", platform="ios", is_active=True),
        )
        await refresh_user_streak(db_session, fake_redis, "user-1", now=NOW, push=push_service)

        assert fake_redis.channels() == ["pubsub:milestone"]
        assert json.loads(fake_redis.published[0][1])["label"] == "First Event! 🎉"
        assert len(push_provider.sent) == 1
        assert push_provider.sent[0]["title"] == "Milestone unlocked!"

    @pytest.mark.asyncio
    async def test_no_timeline(self, db_session: AsyncSession):
        refreshed = await refresh_user_streak(db_session, None, "user-1", now=NOW)
        assert refreshed.streak.current_streak == 0
        assert refreshed.streak.last_activity_date is None
        assert refreshed.new_milestones == []
