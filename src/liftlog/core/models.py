"""
Data models for liftlog.

The two tiers of a workout are kept as distinct types: PendingSession lives
only in local persistence, PersistedWorkoutSession only in the document
store.  Conversion between them happens at the flush boundary.
"""

import math
from dataclasses import dataclass, field
from typing import Literal

LegacyShape = Literal["nested", "flat"]


@dataclass
class LogEntry:
    """
    One logged exercise entry (typically one working set or set group).

    ``date`` is the entry's identity within an exercise's list and is used
    as the delete key.  Unknown keys from stored documents are kept in
    ``extra`` so they survive a round trip.
    """

    date: str  # ISO-8601 timestamp
    weight: float = 0.0  # negative for assisted variations
    reps: float = 0  # int unless a partial rep was logged
    sets: float = 1
    rpe: float | None = None
    notes: str | None = None
    extra: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate entry data."""
        if not isinstance(self.date, str) or not self.date.strip():
            raise ValueError("date must be a non-empty ISO timestamp")
        if self.reps < 0:
            raise ValueError("reps must be non-negative")
        if self.sets < 0:
            raise ValueError("sets must be non-negative")
        if not math.isfinite(self.weight):
            raise ValueError("weight must be a finite number")
        if self.rpe is not None and not math.isfinite(self.rpe):
            raise ValueError("rpe must be a finite number")


# exercise name -> entries, in insertion order (not necessarily sorted)
ExerciseLog = list[LogEntry]
SessionLogs = dict[str, ExerciseLog]


def copy_logs(logs: SessionLogs) -> SessionLogs:
    """Return a copy with fresh lists, sharing the (treated as immutable) entries."""
    return {exercise: list(entries) for exercise, entries in logs.items()}


def count_entries(logs: SessionLogs) -> int:
    """Total number of entries across all exercises."""
    return sum(len(entries) for entries in logs.values())


@dataclass
class PendingSession:
    """An in-progress session that has not reached the document store."""

    logs: SessionLogs
    started_at: str  # ISO timestamp of the first add_log, immutable


@dataclass
class PersistedWorkoutSession:
    """
    A committed workout session document.

    ``id`` is None only between construction and the store assigning one.
    """

    date: str  # ISO timestamp
    logs: SessionLogs = field(default_factory=dict)
    id: str | None = None
    duration: str | None = None  # e.g. "45:32"
    routine_title: str | None = None
    rating: int | None = None


@dataclass
class RateLimitCounter:
    """Stored daily counter for one (user, action) pair."""

    count: int
    reset_at: str  # ISO timestamp of the next UTC midnight
    last_action: str | None = None

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError("count must be non-negative")


@dataclass
class RateLimitStatus:
    """What a caller shows the user about one quota."""

    can_perform: bool
    remaining: int
    limit: int
    reset_at: str | None = None
    error: str | None = None


@dataclass
class LegacyLogDocument:
    """
    The pre-migration single log document, resolved into one shape.

    ``shape`` records which stored layout it came from: ``"nested"`` for
    ``{logs: {...}}`` and ``"flat"`` for ``{exercise: [...], coachAdvice}``.
    """

    shape: LegacyShape
    logs: SessionLogs
    coach_advice: str | None = None
    migrated: bool = False
    skipped_entries: int = 0  # entries without a date, not migratable
