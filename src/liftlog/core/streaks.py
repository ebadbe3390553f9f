"""
Streaks and aggregate views over committed workout sessions.

Everything here is a pure function of the persisted sessions (never the
pending buffer) and is cheap enough to recompute on every read: the work is
proportional to the number of distinct calendar days, not entries.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable

from ..io.serializers import ValidationError, parse_iso
from .models import PersistedWorkoutSession, SessionLogs

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Streaks:
    day: int   # consecutive calendar days ending today or yesterday
    week: int  # consecutive Monday-based weeks ending this week or last week


def _today(today: date | None, tz: tzinfo | None) -> date:
    return today if today is not None else datetime.now(tz).date()


def workout_dates(timestamps: Iterable[str], tz: tzinfo | None = None) -> set[date]:
    """
    Distinct calendar dates of *timestamps* in *tz* (local time if None).

    Unparseable timestamps are skipped.
    """
    dates: set[date] = set()
    for ts in timestamps:
        try:
            dates.add(parse_iso(ts).astimezone(tz).date())
        except ValidationError:
            LOGGER.debug("Ignoring unparseable workout timestamp %r", ts)
    return dates


def day_streak(dates: Iterable[date], today: date | None = None, tz: tzinfo | None = None) -> int:
    """
    Number of consecutive workout days, counting back from the latest.

    The streak is alive only if the latest workout is today or yesterday.
    Counting stops at the first missing day.
    """
    ordered = sorted(set(dates), reverse=True)
    if not ordered:
        return 0

    yesterday = _today(today, tz) - timedelta(days=1)
    if ordered[0] < yesterday:
        return 0

    streak = 1
    for current, previous in zip(ordered, ordered[1:]):
        if (current - previous).days != 1:
            break
        streak += 1
    return streak


def week_start(day: date) -> date:
    """Monday of the week containing *day*."""
    return day - timedelta(days=day.weekday())


def week_streak(dates: Iterable[date], today: date | None = None, tz: tzinfo | None = None) -> int:
    """
    Number of consecutive weeks with at least one workout.

    Counts back from this week, or from last week while this week has no
    workout yet.
    """
    weeks = {week_start(d) for d in dates}
    this_week = week_start(_today(today, tz))
    last_week = this_week - timedelta(days=7)

    if this_week in weeks:
        check = this_week
    elif last_week in weeks:
        check = last_week
    else:
        return 0

    streak = 0
    while check in weeks:
        streak += 1
        check -= timedelta(days=7)
    return streak


def compute_streaks(
    sessions: Iterable[PersistedWorkoutSession],
    today: date | None = None,
    tz: tzinfo | None = None,
) -> Streaks:
    """Day and week streaks over committed sessions."""
    dates = workout_dates((s.date for s in sessions), tz)
    return Streaks(
        day=day_streak(dates, today=today, tz=tz),
        week=week_streak(dates, today=today, tz=tz),
    )


def merge_session_logs(sessions: Iterable[PersistedWorkoutSession]) -> SessionLogs:
    """
    Flatten sessions into one ``exercise -> entries`` map, newest session first.

    Entries repeating an (exercise, date) pair already seen are dropped, so
    a session that was flushed twice is counted once.
    """
    def sort_key(session: PersistedWorkoutSession) -> datetime:
        try:
            return parse_iso(session.date)
        except ValidationError:
            return datetime.min.replace(tzinfo=timezone.utc)

    merged: SessionLogs = {}
    seen: set[tuple[str, str]] = set()
    for session in sorted(sessions, key=sort_key, reverse=True):
        for exercise, entries in session.logs.items():
            for entry in entries:
                key = (exercise, entry.date)
                if key in seen:
                    continue
                seen.add(key)
                merged.setdefault(exercise, []).append(entry)
    return merged
