"""Week and month boundary helpers. Weeks start on Monday, all times UTC."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone


def get_monday(dt: datetime | date) -> date:
    """Get the Monday of the ISO week containing dt."""
    d = dt.date() if isinstance(dt, datetime) else dt
    return d - timedelta(days=d.weekday())


def get_week_iso(dt: datetime | date) -> str:
    """Get ISO week string e.g. '2024-W03'. Uses %G-W%V (ISO year + ISO week)."""
    return dt.strftime("%G-W%V")


def get_week_boundaries(dt: datetime | None = None) -> tuple[datetime, datetime]:
    """Get (Monday 00:00, Sunday 23:59:59.999999) UTC for the ISO week containing dt.

    Both ends are inclusive, so callers compare with ``>= start`` and ``<= end``.
    """
    if dt is None:
        dt = datetime.now(timezone.utc)
    monday = get_monday(dt)
    sunday = monday + timedelta(days=6)
    start = datetime.combine(monday, time.min, tzinfo=timezone.utc)
    end = datetime.combine(sunday, time.max, tzinfo=timezone.utc)
    return start, end


def previous_week_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Boundaries of the last fully completed week before ``now``."""
    if now is None:
        now = datetime.now(timezone.utc)
    return get_week_boundaries(now - timedelta(weeks=1))


def get_month_boundaries(dt: datetime | date) -> tuple[date, date]:
    """First and last calendar day of the month containing dt."""
    first = date(dt.year, dt.month, 1)
    if dt.month == 12:
        next_first = date(dt.year + 1, 1, 1)
    else:
        next_first = date(dt.year, dt.month + 1, 1)
    return first, next_first - timedelta(days=1)
