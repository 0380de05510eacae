"""Party timeline: append nights out, owner-only edits."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.db.models import TimelineEntry
from afterhours.exceptions import InvalidInputError

logger = logging.getLogger(__name__)


async def add_timeline_entry(
    db: AsyncSession,
    user_id: str,
    *,
    event_name: str,
    event_city: str,
    attended_date: date,
    event_id: str | None = None,
    duration_hours: float | None = None,
    rep_earned: int = 0,
    highlight_moment: str | None = None,
    is_public: bool = True,
) -> TimelineEntry:
    """Append a night out to the user's timeline and commit."""
    if not event_name.strip() or not event_city.strip():
        raise InvalidInputError("event_name and event_city are required")
    if rep_earned < 0:
        raise InvalidInputError("rep_earned must not be negative")
    if duration_hours is not None and duration_hours < 0:
        raise InvalidInputError("duration_hours must not be negative")

    entry = TimelineEntry(
        user_id=user_id,
        event_id=event_id,
        event_name=event_name.strip(),
        event_city=event_city.strip(),
        attended_date=attended_date,
        duration_hours=duration_hours,
        rep_earned=rep_earned,
        highlight_moment=highlight_moment or None,
        is_public=is_public,
        created_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    await db.commit()
    logger.info("User %s added timeline entry %s (%s)", user_id, entry.id, entry.attended_date)
    return entry


async def list_timeline(
    db: AsyncSession,
    user_id: str,
    viewer_id: str | None = None,
    limit: int | None = None,
) -> list[TimelineEntry]:
    """Newest first. Viewers other than the owner only see public entries."""
    stmt = select(TimelineEntry).where(TimelineEntry.user_id == user_id)
    if viewer_id != user_id:
        stmt = stmt.where(TimelineEntry.is_public.is_(True))
    stmt = stmt.order_by(TimelineEntry.attended_date.desc(), TimelineEntry.id.desc())
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def _update_own_entry(db: AsyncSession, user_id: str, entry_id: int, **values: object) -> bool:
    result = await db.execute(
        update(TimelineEntry)
        .where(TimelineEntry.id == entry_id, TimelineEntry.user_id == user_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


async def update_highlight(db: AsyncSession, user_id: str, entry_id: int, highlight: str | None) -> bool:
    """Set the highlight. False if the entry is missing or not the user's."""
    if highlight is not None and len(highlight) > 500:
        raise InvalidInputError("highlight_moment must be at most 500 characters")
    return await _update_own_entry(db, user_id, entry_id, highlight_moment=highlight or None)


async def set_entry_visibility(db: AsyncSession, user_id: str, entry_id: int, is_public: bool) -> bool:
    return await _update_own_entry(db, user_id, entry_id, is_public=is_public)
