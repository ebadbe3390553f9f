"""Tests for streaks and merged history views."""

from datetime import date, timedelta, timezone

from liftlog.core.models import LogEntry, PersistedWorkoutSession
from liftlog.core.streaks import (
    compute_streaks,
    day_streak,
    merge_session_logs,
    week_start,
    week_streak,
    workout_dates,
)

TODAY = date(2026, 3, 10)  # a Tuesday


def _session(ts: str, **logs) -> PersistedWorkoutSession:
    return PersistedWorkoutSession(date=ts, logs=dict(logs))


class TestDayStreak:
    """Consecutive calendar days ending today or yesterday."""

    def test_no_workouts(self):
        assert day_streak([], today=TODAY) == 0

    def test_today_and_yesterday(self):
        assert day_streak([date(2026, 3, 10), date(2026, 3, 9)], today=TODAY) == 2

    def test_gap_breaks_streak(self):
        assert day_streak([date(2026, 3, 10), date(2026, 3, 7)], today=TODAY) == 1

    def test_streak_alive_from_yesterday(self):
        dates = [date(2026, 3, 9), date(2026, 3, 8), date(2026, 3, 7)]
        assert day_streak(dates, today=TODAY) == 3

    def test_stale_streak_is_zero(self):
        assert day_streak([date(2026, 3, 8), date(2026, 3, 7)], today=TODAY) == 0

    def test_duplicate_days_count_once(self):
        assert day_streak([date(2026, 3, 10)] * 3, today=TODAY) == 1


class TestWeekStreak:
    """Consecutive Monday-based weeks."""

    def test_week_start_is_monday(self):
        assert week_start(TODAY) == date(2026, 3, 9)
        assert week_start(date(2026, 3, 15)) == date(2026, 3, 9)

    def test_three_consecutive_weeks(self):
        dates = [date(2026, 3, 9), date(2026, 3, 4), date(2026, 2, 23)]
        assert week_streak(dates, today=TODAY) == 3

    def test_last_week_keeps_streak_alive(self):
        dates = [date(2026, 3, 6), date(2026, 2, 27)]
        assert week_streak(dates, today=TODAY) == 2

    def test_skipped_week_breaks_streak(self):
        dates = [date(2026, 3, 10), date(2026, 2, 24)]
        assert week_streak(dates, today=TODAY) == 1

    def test_two_weeks_ago_is_zero(self):
        assert week_streak([date(2026, 2, 25)], today=TODAY) == 0


class TestComputeStreaks:
    """Streaks from committed session timestamps."""

    def test_from_sessions(self):
        sessions = [
            _session("2026-03-10T07:00:00.000Z"),
            _session("2026-03-09T18:00:00.000Z"),
            _session("2026-03-09T07:00:00.000Z"),
            _session("2026-03-02T18:00:00.000Z"),
        ]

        streaks = compute_streaks(sessions, today=TODAY, tz=timezone.utc)

        assert streaks.day == 2
        assert streaks.week == 2

    def test_unparseable_dates_are_ignored(self):
        sessions = [_session("not a date"), _session("2026-03-10T07:00:00.000Z")]

        streaks = compute_streaks(sessions, today=TODAY, tz=timezone.utc)

        assert streaks.day == 1

    def test_dates_use_given_timezone(self):
        plus_ten = timezone(timedelta(hours=10))
        # 20:00 UTC on the 9th is already the 10th at UTC+10
        assert workout_dates(["2026-03-09T20:00:00.000Z"], plus_ten) == {date(2026, 3, 10)}
        assert workout_dates(["2026-03-09T20:00:00.000Z"], timezone.utc) == {date(2026, 3, 9)}


class TestMergeSessionLogs:
    """Flattened per-exercise history."""

    def test_newest_session_first(self):
        older = _session("2026-03-01T07:00:00.000Z", Squat=[LogEntry(date="2026-03-01T07:05:00.000Z", reps=5)])
        newer = _session("2026-03-08T07:00:00.000Z", Squat=[LogEntry(date="2026-03-08T07:05:00.000Z", reps=6)])

        merged = merge_session_logs([older, newer])

        assert [e.reps for e in merged["Squat"]] == [6, 5]

    def test_repeated_entry_counted_once(self):
        entry = LogEntry(date="2026-03-08T07:05:00.000Z", reps=6)
        first = _session("2026-03-08T07:00:00.000Z", Squat=[entry])
        duplicate = _session("2026-03-08T07:00:00.000Z", Squat=[entry], Row=[LogEntry(date="2026-03-08T07:20:00.000Z")])

        merged = merge_session_logs([first, duplicate])

        assert len(merged["Squat"]) == 1
        assert len(merged["Row"]) == 1
