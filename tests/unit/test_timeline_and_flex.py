"""Timeline ownership rules and flex card privacy."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.db.models import FlexCard, PushToken
from afterhours.engagement.flex_cards import generate_flex_card, get_public_flex_card, list_flex_cards
from afterhours.engagement.timeline_service import (
    add_timeline_entry,
    list_timeline,
    set_entry_visibility,
    update_highlight,
)
from afterhours.exceptions import InvalidInputError
from afterhours.notifications.push import notify_users

NOW = datetime(2026, 10, 14, 20, 0, tzinfo=timezone.utc)


async def _add(db: AsyncSession, user_id: str = "user-1", **overrides):
    fields = {
        "event_name": "Warehouse Rave",
        "event_city": "Berlin",
        "attended_date": date(2026, 10, 13),
        "duration_hours": 5.0,
        "rep_earned": 20,
    }
    fields.update(overrides)
    return await add_timeline_entry(db, user_id, **fields)


class TestTimeline:
    @pytest.mark.asyncio
    async def test_add_strips_names(self, db_session: AsyncSession):
        entry = await _add(db_session, event_name="  Rooftop  ", event_city=" Lisbon ")
        assert entry.id is not None
        assert (entry.event_name, entry.event_city) == ("Rooftop", "Lisbon")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [{"event_name": "  "}, {"event_city": ""}, {"rep_earned": -1}, {"duration_hours": -2.0}],
    )
    async def test_rejects_invalid_entries(self, db_session: AsyncSession, overrides):
        with pytest.raises(InvalidInputError):
            await _add(db_session, **overrides)

    @pytest.mark.asyncio
    async def test_private_entries_hidden_from_others(self, db_session: AsyncSession):
        await _add(db_session, event_name="Public", attended_date=date(2026, 10, 10))
        await _add(db_session, event_name="Private", attended_date=date(2026, 10, 12), is_public=False)

        own = await list_timeline(db_session, "user-1", viewer_id="user-1")
        other = await list_timeline(db_session, "user-1", viewer_id="user-2")
        anonymous = await list_timeline(db_session, "user-1")

        assert [e.event_name for e in own] == ["Private", "Public"]
        assert [e.event_name for e in other] == ["Public"]
        assert [e.event_name for e in anonymous] == ["Public"]

    @pytest.mark.asyncio
    async def test_only_owner_can_edit(self, db_session: AsyncSession):
        entry = await _add(db_session)

        assert await update_highlight(db_session, "user-2", entry.id, "hijacked") is False
        assert await set_entry_visibility(db_session, "user-2", entry.id, False) is False
        assert await update_highlight(db_session, "user-1", entry.id, "Sunrise set") is True
        assert await set_entry_visibility(db_session, "user-1", entry.id, False) is True

        await db_session.refresh(entry)
        assert entry.highlight_moment == "Sunrise set"
        assert entry.is_public is False

    @pytest.mark.asyncio
    async def test_edit_missing_entry(self, db_session: AsyncSession):
        assert await update_highlight(db_session, "user-1", 999, "x") is False


class TestFlexCards:
    @pytest.mark.asyncio
    async def test_generate_snapshots_stats(self, db_session: AsyncSession):
        await _add(db_session, attended_date=date(2026, 10, 13), rep_earned=20)
        await _add(db_session, attended_date=date(2026, 10, 14), rep_earned=5)

        card = await generate_flex_card(db_session, "user-1", "weekly_recap", now=NOW)
        assert card.title == "2 Nights This Week"
        assert card.stats == {"nights": 2, "rep": 25, "week": "Week of Oct 12"}
        assert card.share_code

    @pytest.mark.asyncio
    async def test_public_lookup(self, db_session: AsyncSession):
        card = await generate_flex_card(db_session, "user-1", "milestone", now=NOW)
        found = await get_public_flex_card(db_session, card.share_code)
        assert found is not None
        assert found.id == card.id

    @pytest.mark.asyncio
    async def test_private_card_looks_missing(self, db_session: AsyncSession):
        card = await generate_flex_card(db_session, "user-1", "streak", now=NOW, is_public=False)
        assert await get_public_flex_card(db_session, card.share_code) is None
        assert await get_public_flex_card(db_session, "does-not-exist") is None

    @pytest.mark.asyncio
    async def test_share_codes_unique(self, db_session: AsyncSession):
        for _ in range(5):
            await generate_flex_card(db_session, "user-1", "milestone", now=NOW)
        cards = await list_flex_cards(db_session, "user-1")
        assert len({c.share_code for c in cards}) == 5

    @pytest.mark.asyncio
    async def test_share_code_collision_is_retried(self, db_session: AsyncSession, monkeypatch):
        db_session.add(
            FlexCard(
                user_id="user-2",
                card_type="milestone",
                title="taken",
                stats={},
                share_code="taken-code",
                is_public=True,
                created_at=NOW,
            )
        )
        await db_session.commit()

        codes = iter(["taken-code", "fresh-code"])
        monkeypatch.setattr("afterhours.engagement.flex_cards.generate_share_code", lambda: next(codes))
        card = await generate_flex_card(db_session, "user-1", "milestone", now=NOW)
        assert card.share_code == "fresh-code"

    @pytest.mark.asyncio
    async def test_unknown_card_type(self, db_session: AsyncSession):
        with pytest.raises(InvalidInputError):
            await generate_flex_card(db_session, "user-1", "yearly")


class TestNotifyUsers:
    @pytest.mark.asyncio
    async def test_invalid_tokens_deactivated(self, db_session: AsyncSession, add_rows, push_service, push_provider):
        await add_rows(
            PushToken(user_id="user-1", token="good", platform="ios", is_active=True),
            PushToken(user_id="user-1", token="stale", platform="android", is_active=True),
            PushToken(user_id="user-1", token="old", platform="android", is_active=False),
        )
        push_provider.invalid = {"stale"}

        result = await notify_users(db_session, ["user-1"], "Hi", "There", push=push_service)

        assert result.sent == 1
        assert result.invalid_tokens == ["stale"]
        assert [s["token"] for s in push_provider.sent] == ["good"]
        stale = (
            await db_session.execute(select(PushToken).where(PushToken.token == "stale"))
        ).scalar_one()
        await db_session.refresh(stale)
        assert stale.is_active is False

    @pytest.mark.asyncio
    async def test_no_devices(self, db_session: AsyncSession, push_service, push_provider):
        result = await notify_users(db_session, ["user-1"], "Hi", "There", push=push_service)
        assert result.sent == 0
        assert push_provider.sent == []
