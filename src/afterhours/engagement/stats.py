"""Pure timeline statistics: totals, streaks, favourite city, period counts.

Nothing here touches the database; callers pass the user's timeline rows
(or any objects with the same attributes) and the reference time.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Protocol

from afterhours.engagement.week_utils import get_month_boundaries, get_monday

# Two nights out belong to the same streak if they are at most this far apart
STREAK_GAP = timedelta(days=7)


class TimelineLike(Protocol):
    attended_date: date
    event_city: str
    duration_hours: float | None
    rep_earned: int


@dataclass
class PeriodStats:
    nights: int = 0
    rep: int = 0


@dataclass
class TimelineStats:
    total_nights: int = 0
    total_hours: float = 0.0
    total_rep: int = 0
    cities_visited: list[str] = field(default_factory=list)
    current_streak: int = 0
    longest_streak: int = 0
    favorite_city: str | None = None
    this_week: PeriodStats = field(default_factory=PeriodStats)
    this_month: PeriodStats = field(default_factory=PeriodStats)
    last_activity_date: date | None = None


def compute_streaks(dates: Iterable[date], today: date) -> tuple[int, int]:
    """Return (current_streak, longest_streak) for a set of attended dates.

    Distinct dates, newest first, are split into runs wherever two
    neighbours are more than seven days apart. The longest run is the
    longest streak. The newest run is the current streak, but only while its
    latest date is within seven days of ``today``.
    """
    ordered = sorted(set(dates), reverse=True)
    if not ordered:
        return 0, 0

    runs = [1]
    for newer, older in zip(ordered, ordered[1:]):
        if newer - older <= STREAK_GAP:
            runs[-1] += 1
        else:
            runs.append(1)

    current = runs[0] if today - ordered[0] <= STREAK_GAP else 0
    return current, max(runs)


def compute_stats(entries: Iterable[TimelineLike], now: datetime) -> TimelineStats:
    """Aggregate timeline entries as of ``now``."""
    entries = list(entries)
    today = now.date()
    week_start = get_monday(today)
    week_end = week_start + timedelta(days=6)
    month_start, month_end = get_month_boundaries(today)

    # Counter keeps first-seen order, so most_common breaks ties by first seen
    city_counts = Counter(e.event_city for e in entries)
    current, longest = compute_streaks((e.attended_date for e in entries), today)

    stats = TimelineStats(
        total_nights=len(entries),
        total_hours=sum(e.duration_hours or 0 for e in entries),
        total_rep=sum(e.rep_earned or 0 for e in entries),
        cities_visited=list(city_counts),
        current_streak=current,
        longest_streak=longest,
        favorite_city=city_counts.most_common(1)[0][0] if city_counts else None,
        last_activity_date=max((e.attended_date for e in entries), default=None),
    )
    for e in entries:
        if week_start <= e.attended_date <= week_end:
            stats.this_week.nights += 1
            stats.this_week.rep += e.rep_earned or 0
        if month_start <= e.attended_date <= month_end:
            stats.this_month.nights += 1
            stats.this_month.rep += e.rep_earned or 0
    return stats
