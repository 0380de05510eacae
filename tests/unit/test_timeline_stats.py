"""Pure timeline statistics and streak runs."""

from __future__ import annotations

from datetime import date, datetime, timezone
from types import SimpleNamespace

from afterhours.engagement.stats import compute_stats, compute_streaks

TODAY = date(2026, 10, 18)  # Sunday
NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def _night(d: date, city: str = "Berlin", hours: float | None = None, rep: int = 0) -> SimpleNamespace:
    return SimpleNamespace(attended_date=d, event_city=city, duration_hours=hours, rep_earned=rep)


class TestComputeStreaks:
    def test_no_dates(self):
        assert compute_streaks([], TODAY) == (0, 0)

    def test_single_recent_night(self):
        assert compute_streaks([date(2026, 10, 17)], TODAY) == (1, 1)

    def test_gap_of_exactly_seven_days_continues(self):
        dates = [date(2026, 10, 17), date(2026, 10, 10), date(2026, 10, 3)]
        assert compute_streaks(dates, TODAY) == (3, 3)

    def test_gap_of_eight_days_breaks(self):
        dates = [date(2026, 10, 17), date(2026, 10, 9)]
        assert compute_streaks(dates, TODAY) == (1, 1)

    def test_longest_run_is_older(self):
        dates = [
            date(2026, 10, 15),
            date(2026, 9, 16),
            date(2026, 9, 10),
            date(2026, 9, 5),
            date(2026, 9, 1),
        ]
        assert compute_streaks(dates, TODAY) == (1, 4)

    def test_two_week_gap_splits_runs(self):
        dates = [date(2024, 1, 1), date(2024, 1, 6), date(2024, 1, 20)]
        assert compute_streaks(dates, date(2024, 1, 22)) == (1, 2)

    def test_newest_night_exactly_seven_days_ago_is_current(self):
        dates = [date(2026, 10, 11), date(2026, 10, 6)]
        assert compute_streaks(dates, TODAY) == (2, 2)

    def test_stale_run_is_not_current(self):
        """Newest night more than seven days ago: current streak is 0."""
        dates = [date(2026, 10, 10), date(2026, 10, 5)]
        assert compute_streaks(dates, TODAY) == (0, 2)

    def test_duplicate_dates_count_once(self):
        dates = [date(2026, 10, 17), date(2026, 10, 17), date(2026, 10, 12)]
        assert compute_streaks(dates, TODAY) == (2, 2)

    def test_order_does_not_matter(self):
        dates = [date(2026, 10, 3), date(2026, 10, 17), date(2026, 10, 10)]
        assert compute_streaks(dates, TODAY) == (3, 3)


class TestComputeStats:
    def test_empty_timeline(self):
        stats = compute_stats([], NOW)
        assert stats.total_nights == 0
        assert stats.total_hours == 0
        assert stats.cities_visited == []
        assert stats.favorite_city is None
        assert stats.last_activity_date is None
        assert stats.this_week.nights == 0

    def test_aggregates(self):
        entries = [
            _night(date(2026, 10, 17), "Berlin", 4.0, 10),
            _night(date(2026, 10, 13), "Lisbon", None, 5),
            _night(date(2026, 10, 3), "Berlin", 2.5, 0),
            _night(date(2026, 9, 28), "Lisbon", 1.0, 20),
        ]
        stats = compute_stats(entries, NOW)

        assert stats.total_nights == 4
        assert stats.total_hours == 7.5
        assert stats.total_rep == 35
        assert stats.cities_visited == ["Berlin", "Lisbon"]
        assert stats.last_activity_date == date(2026, 10, 17)
        assert (stats.this_week.nights, stats.this_week.rep) == (2, 15)
        assert (stats.this_month.nights, stats.this_month.rep) == (3, 15)
        assert (stats.current_streak, stats.longest_streak) == (2, 2)

    def test_favorite_city_tie_goes_to_first_seen(self):
        entries = [
            _night(date(2026, 10, 17), "Lisbon"),
            _night(date(2026, 10, 16), "Berlin"),
            _night(date(2026, 10, 15), "Berlin"),
            _night(date(2026, 10, 14), "Lisbon"),
        ]
        assert compute_stats(entries, NOW).favorite_city == "Lisbon"

    def test_favorite_city_by_count(self):
        entries = [
            _night(date(2026, 10, 17), "Lisbon"),
            _night(date(2026, 10, 16), "Berlin"),
            _night(date(2026, 10, 15), "Berlin"),
        ]
        assert compute_stats(entries, NOW).favorite_city == "Berlin"

    def test_week_boundary_excludes_previous_sunday(self):
        entries = [_night(date(2026, 10, 11)), _night(date(2026, 10, 12))]
        assert compute_stats(entries, NOW).this_week.nights == 1
