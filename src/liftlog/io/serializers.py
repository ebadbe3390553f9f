"""
JSON serialization for liftlog data models.

Handles conversion between dataclasses and the JSON-compatible documents
shared with the web client (camelCase keys, JavaScript-style ISO timestamps).
"""

import json
import math
import re
from datetime import date, datetime, timezone
from typing import Any

from ..core.models import (
    LegacyLogDocument,
    LogEntry,
    PendingSession,
    PersistedWorkoutSession,
    RateLimitCounter,
    SessionLogs,
)

_LOG_ENTRY_KEYS = ("date", "weight", "reps", "sets", "rpe", "notes")

# 8x3@60 -> 3 sets of 8 reps at 60 kg; "x3" and "@60" are optional, "@-20" is assisted
_SET_SPEC_RE = re.compile(
    r"^\s*(?P<reps>\d+)\s*(?:x\s*(?P<sets>\d+))?\s*(?:@\s*(?P<weight>[+-]?\d+(?:\.\d+)?)\s*(?:kg)?)?\s*$",
    re.IGNORECASE,
)


class ValidationError(Exception):
    """Raised when data validation fails."""

    pass


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """
    Format a datetime the way JavaScript's ``toISOString`` does.

    Naive datetimes are taken as UTC.

    Returns:
        String like ``2026-02-22T20:30:00.000Z``
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_iso(value: str) -> datetime:
    """
    Parse an ISO-8601 date or timestamp into an aware UTC datetime.

    Accepts a trailing ``Z``, explicit offsets, and bare ``YYYY-MM-DD``
    dates.  Values without an offset are read as UTC.

    Raises:
        ValidationError: If the value is not a parseable timestamp
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid timestamp: {value!r}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = datetime.combine(date.fromisoformat(text), datetime.min.time())
        except ValueError as e:
            raise ValidationError(f"Invalid timestamp: {value!r}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _as_number(value: Any, name: str, default: float, signed: bool = False) -> float:
    """Coerce a stored numeric field, rejecting junk and (unless *signed*) negatives."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a number, got {value!r}") from e
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be finite, got {value!r}")
    if not signed and number < 0:
        raise ValidationError(f"{name} must be non-negative, got {value!r}")
    return number


def _whole(number: float) -> float:
    """Integral values as int, so 8.0 reps are stored back as 8."""
    return int(number) if number.is_integer() else number


def parse_set_spec(spec: str) -> tuple[int, int, float]:
    """
    Parse a compact set description.

    Formats:
        8          8 reps, 1 set, bodyweight
        8x3        8 reps, 3 sets, bodyweight
        8x3@60     8 reps, 3 sets, 60 kg
        8@62.5kg   8 reps, 1 set, 62.5 kg
        6x2@-20    6 reps, 2 sets, 20 kg of assistance

    Returns:
        (reps, sets, weight)

    Raises:
        ValidationError: If the format is not recognised
    """
    match = _SET_SPEC_RE.match(spec or "")
    if match is None:
        raise ValidationError(
            f"Invalid set format: {spec!r}. Expected REPS[xSETS][@WEIGHT], e.g. 8x3@60"
        )
    reps = int(match.group("reps"))
    sets = int(match.group("sets")) if match.group("sets") else 1
    weight = float(match.group("weight")) if match.group("weight") else 0.0
    if sets == 0:
        raise ValidationError("sets must be at least 1")
    return reps, sets, weight


# ---------------------------------------------------------------------------
# Log entries
# ---------------------------------------------------------------------------


def log_entry_to_dict(entry: LogEntry) -> dict[str, Any]:
    """
    Convert LogEntry to JSON-compatible dict.

    Extra keys are written back next to the known ones; known keys win.
    """
    d: dict[str, Any] = dict(entry.extra)
    d.update(
        {
            "date": entry.date,
            "weight": entry.weight,
            "reps": entry.reps,
            "sets": entry.sets,
            "rpe": entry.rpe,
        }
    )
    if entry.notes is not None:
        d["notes"] = entry.notes
    return d


def dict_to_log_entry(data: dict[str, Any]) -> LogEntry:
    """
    Convert dict to LogEntry.

    Raises:
        ValidationError: If data is invalid
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Log entry must be an object, got {type(data).__name__}")

    raw_date = data.get("date")
    if not isinstance(raw_date, str) or not raw_date.strip():
        raise ValidationError(f"Log entry has no date: {data!r}")

    rpe = data.get("rpe")
    notes = data.get("notes")

    try:
        return LogEntry(
            date=raw_date,
            weight=_as_number(data.get("weight"), "weight", 0.0, signed=True),
            reps=_whole(_as_number(data.get("reps"), "reps", 0)),
            sets=_whole(_as_number(data.get("sets"), "sets", 1)),
            rpe=_as_number(rpe, "rpe", 0.0, signed=True) if rpe is not None else None,
            notes=str(notes) if notes is not None else None,
            extra={k: v for k, v in data.items() if k not in _LOG_ENTRY_KEYS},
        )
    except ValueError as e:
        raise ValidationError(str(e)) from e


def logs_to_dict(logs: SessionLogs) -> dict[str, list[dict[str, Any]]]:
    """Convert SessionLogs to a JSON-compatible mapping."""
    return {
        exercise: [log_entry_to_dict(entry) for entry in entries]
        for exercise, entries in logs.items()
    }


def dict_to_logs(data: Any) -> SessionLogs:
    """
    Convert a stored ``{exercise: [entry, ...]}`` mapping to SessionLogs.

    Raises:
        ValidationError: If the mapping or any entry is invalid
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Logs must be an object, got {type(data).__name__}")

    logs: SessionLogs = {}
    for exercise, entries in data.items():
        if not isinstance(entries, list):
            raise ValidationError(f"Logs for {exercise!r} must be a list")
        logs[str(exercise)] = [dict_to_log_entry(e) for e in entries]
    return logs


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


def pending_session_to_json(pending: PendingSession) -> str:
    """Serialize a PendingSession for local persistence."""
    return json.dumps(
        {"logs": logs_to_dict(pending.logs), "startedAt": pending.started_at}
    )


def json_to_pending_session(raw: str) -> PendingSession:
    """
    Parse a locally persisted PendingSession.

    Raises:
        ValidationError: If the JSON is corrupt or has the wrong shape
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise ValidationError(f"Corrupt pending session: {e}") from e

    if not isinstance(data, dict):
        raise ValidationError("Pending session must be an object")

    logs = dict_to_logs(data.get("logs") or {})
    started_at = data.get("startedAt")
    if not isinstance(started_at, str) or not started_at:
        # Older buffers could be written before startedAt existed
        started_at = to_iso(utc_now())

    return PendingSession(logs=logs, started_at=started_at)


def workout_session_to_dict(session: PersistedWorkoutSession) -> dict[str, Any]:
    """
    Convert PersistedWorkoutSession to a store document.

    ``id`` is only written when it is part of the document itself
    (migrated sessions); for ``add`` it is assigned by the store.
    """
    d: dict[str, Any] = {
        "date": session.date,
        "duration": session.duration,
        "routineTitle": session.routine_title,
        "rating": session.rating,
        "logs": logs_to_dict(session.logs),
    }
    if session.id is not None:
        d["id"] = session.id
    return d


def dict_to_workout_session(data: dict[str, Any], doc_id: str | None = None) -> PersistedWorkoutSession:
    """
    Convert a store document to PersistedWorkoutSession.

    Args:
        data: Document data
        doc_id: Document id; used when the document has no ``id`` field

    Raises:
        ValidationError: If data is invalid
    """
    if not isinstance(data, dict):
        raise ValidationError("Session document must be an object")

    session_date = data.get("date")
    if not isinstance(session_date, str) or not session_date:
        raise ValidationError(f"Session {doc_id!r} has no date")

    rating = data.get("rating")
    return PersistedWorkoutSession(
        id=data.get("id") or doc_id,
        date=session_date,
        logs=dict_to_logs(data.get("logs") or {}),
        duration=data.get("duration"),
        routine_title=data.get("routineTitle"),
        rating=int(rating) if rating is not None else None,
    )


# ---------------------------------------------------------------------------
# Rate-limit counters
# ---------------------------------------------------------------------------


def rate_limit_counter_to_dict(counter: RateLimitCounter) -> dict[str, Any]:
    """Convert RateLimitCounter to a store document."""
    return {
        "count": counter.count,
        "resetAt": counter.reset_at,
        "lastAction": counter.last_action,
    }


def dict_to_rate_limit_counter(data: dict[str, Any]) -> RateLimitCounter:
    """
    Convert a store document to RateLimitCounter.

    A missing count reads as 0.

    Raises:
        ValidationError: If resetAt is missing or count is invalid
    """
    reset_at = data.get("resetAt")
    if not isinstance(reset_at, str) or not reset_at:
        raise ValidationError("Rate limit counter has no resetAt")
    parse_iso(reset_at)

    return RateLimitCounter(
        count=int(_as_number(data.get("count"), "count", 0)),
        reset_at=reset_at,
        last_action=data.get("lastAction"),
    )


# ---------------------------------------------------------------------------
# Legacy log document
# ---------------------------------------------------------------------------


def parse_legacy_document(data: dict[str, Any]) -> LegacyLogDocument:
    """
    Resolve a legacy log document into its canonical form.

    Two stored shapes exist:
      - nested: ``{"logs": {exercise: [...]}, "coachAdvice": ...}``
      - flat:   ``{exercise: [...], ..., "coachAdvice": ...}``

    In the flat shape a key holds a log list exactly when its value is a
    list; every other key is metadata.  Entries without a date cannot be
    placed in any session and are counted in ``skipped_entries``.

    Raises:
        ValidationError: If a log list contains an invalid entry
    """
    coach_advice = data.get("coachAdvice") or None
    migrated = data.get("migratedToSessions") is True

    if data.get("logs"):
        shape = "nested"
        raw_logs = data["logs"]
        if not isinstance(raw_logs, dict):
            raise ValidationError(
                f"Legacy logs must be an object, got {type(raw_logs).__name__}"
            )
    else:
        shape = "flat"
        raw_logs = {key: value for key, value in data.items() if isinstance(value, list)}

    logs: SessionLogs = {}
    skipped = 0
    for exercise, entries in raw_logs.items():
        if not isinstance(entries, list):
            continue
        kept: list[LogEntry] = []
        for e in entries:
            if isinstance(e, dict) and isinstance(e.get("date"), str) and e["date"].strip():
                kept.append(dict_to_log_entry(e))
            else:
                skipped += 1
        logs[str(exercise)] = kept

    return LegacyLogDocument(
        shape=shape,  # type: ignore[arg-type]
        logs=logs,
        coach_advice=coach_advice,
        migrated=migrated,
        skipped_entries=skipped,
    )
