"""
Local-first buffer for the workout in progress.

Entries are accumulated in memory and mirrored to local persistence after
every change, with no store traffic.  Finishing the workout commits the
whole session as one document write; local state is dropped only once that
write has succeeded, so a failed flush (or a restart before flushing) loses
nothing.

The one remaining loss window is a crash after the store accepted the
session but before local state was cleared: the next flush then creates a
second session document.  Aggregate views de-duplicate by entry date.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable

from ..io.document_store import DocumentStore
from ..io.local_storage import LocalStorage
from ..io.paths import profile_doc, workout_sessions_collection
from ..io.serializers import (
    ValidationError,
    json_to_pending_session,
    pending_session_to_json,
    to_iso,
    utc_now,
    workout_session_to_dict,
)
from .config import (
    DEFAULT_APP_ID,
    EVENT_WORKOUT_COMPLETED,
    EVENT_WORKOUT_STARTED,
    PENDING_SESSION_KEY_PREFIX,
)
from .events import EventSink, NullEventSink
from .models import (
    LogEntry,
    PendingSession,
    PersistedWorkoutSession,
    SessionLogs,
    copy_logs,
    count_entries,
)

LOGGER = logging.getLogger(__name__)


def pending_session_key(uid: str) -> str:
    """Local persistence key of one user's pending session."""
    return f"{PENDING_SESSION_KEY_PREFIX}_{uid}"


class SessionBuffer:
    """
    Accumulates one user's workout on this device until it is flushed.

    At most one pending session exists per user and device.  It starts with
    the first add_log (which fixes ``started_at``) and ends with a
    successful flush_session or a clear_session.
    """

    def __init__(
        self,
        store: DocumentStore,
        local_storage: LocalStorage,
        uid: str,
        *,
        app_id: str = DEFAULT_APP_ID,
        events: EventSink | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.local_storage = local_storage
        self.uid = uid
        self.app_id = app_id
        self._events = events or NullEventSink()
        self._clock = clock
        self._storage_key = pending_session_key(uid)
        self._logs: SessionLogs = {}
        self._started_at: str | None = None
        self._flush_lock = asyncio.Lock()
        self._recover()

    # ── State ────────────────────────────────────────────────────────────────

    @property
    def pending_logs(self) -> SessionLogs:
        """Copy of the buffered entries, keyed by exercise."""
        return copy_logs(self._logs)

    @property
    def started_at(self) -> str | None:
        return self._started_at

    @property
    def is_session_active(self) -> bool:
        return bool(self._logs)

    def snapshot(self) -> PendingSession | None:
        """The pending session, or None when the buffer is empty."""
        if not self._logs:
            return None
        return PendingSession(
            logs=copy_logs(self._logs),
            started_at=self._started_at or to_iso(self._clock()),
        )

    # ── Local persistence ────────────────────────────────────────────────────

    def _recover(self) -> None:
        """Adopt a non-empty pending session left by a previous run."""
        raw = self.local_storage.get_item(self._storage_key)
        if not raw:
            return
        try:
            pending = json_to_pending_session(raw)
        except ValidationError as e:
            LOGGER.warning("Discarding corrupt pending session for %s: %s", self.uid, e)
            self.local_storage.remove_item(self._storage_key)
            return

        # Drop empty exercise lists a foreign writer may have left behind
        logs = {exercise: entries for exercise, entries in pending.logs.items() if entries}
        if not logs:
            self.local_storage.remove_item(self._storage_key)
            return

        self._logs = logs
        self._started_at = pending.started_at
        LOGGER.info(
            "Recovered pending session for %s: %d entries since %s",
            self.uid,
            count_entries(logs),
            pending.started_at,
        )

    def _persist(self) -> None:
        """Mirror the current state to local persistence."""
        try:
            pending = self.snapshot()
            if pending is None:
                self.local_storage.remove_item(self._storage_key)
            else:
                self.local_storage.set_item(self._storage_key, pending_session_to_json(pending))
        except OSError as e:
            # The in-memory buffer stays authoritative for this run
            LOGGER.error("Could not persist pending session for %s: %s", self.uid, e)

    # ── Mutations (never touch the store) ────────────────────────────────────

    def add_log(self, exercise: str, entry: LogEntry) -> None:
        """Append *entry* to the exercise's list, starting a session if needed."""
        if not exercise:
            raise ValueError("exercise name must be non-empty")

        existing = self._logs.get(exercise, [])
        if any(e.date == entry.date for e in existing):
            LOGGER.warning(
                "Duplicate entry date %s for %s; removing either will remove both",
                entry.date,
                exercise,
            )
        self._logs[exercise] = [*existing, entry]

        if self._started_at is None:
            self._started_at = to_iso(self._clock())
            self._events.capture(EVENT_WORKOUT_STARTED)

        self._persist()

    def remove_log(self, exercise: str, entry: LogEntry) -> None:
        """Remove every entry of *exercise* whose date equals ``entry.date``."""
        existing = self._logs.get(exercise)
        if existing is None:
            return

        remaining = [e for e in existing if e.date != entry.date]
        if remaining:
            self._logs[exercise] = remaining
        else:
            del self._logs[exercise]

        if not self._logs:
            self._started_at = None
        self._persist()

    def clear_session(self) -> None:
        """Discard the pending session without writing it.  Cannot be undone."""
        if self._logs:
            LOGGER.info(
                "Discarding pending session for %s (%d entries)",
                self.uid,
                count_entries(self._logs),
            )
        self._logs = {}
        self._started_at = None
        self.local_storage.remove_item(self._storage_key)

    # ── Flush ────────────────────────────────────────────────────────────────

    async def flush_session(
        self,
        duration: str | None = None,
        routine_title: str | None = None,
        rating: int | None = None,
    ) -> PersistedWorkoutSession | None:
        """
        Commit the pending session to the store as one document.

        Args:
            duration: Display duration, e.g. "45:32"
            routine_title: Title of the routine that was followed
            rating: User's rating of the workout

        Returns:
            The stored session with its new id, or None if the buffer was empty

        Raises:
            Exception: Whatever the store raised; the buffer is left intact
        """
        async with self._flush_lock:
            if not self._logs:
                return None

            flushed = copy_logs(self._logs)
            session = PersistedWorkoutSession(
                date=self._started_at or to_iso(self._clock()),
                logs=flushed,
                duration=duration or None,
                routine_title=routine_title or None,
                rating=rating or None,
            )

            try:
                session.id = await self.store.add(
                    workout_sessions_collection(self.app_id, self.uid),
                    workout_session_to_dict(session),
                )
            except Exception:
                LOGGER.exception("Session flush failed for %s; kept locally", self.uid)
                raise

            await self._mark_last_activity()
            self._drop_flushed(flushed)

            LOGGER.info(
                "Flushed session %s for %s (%d entries)",
                session.id,
                self.uid,
                count_entries(flushed),
            )
            self._events.capture(
                EVENT_WORKOUT_COMPLETED,
                {
                    "duration": session.duration,
                    "routine_title": session.routine_title,
                    "rating": session.rating,
                },
            )
            return session

    async def _mark_last_activity(self) -> None:
        """Best-effort lastWorkoutDate on the profile; failures are only logged."""
        try:
            await self.store.set(
                profile_doc(self.app_id, self.uid),
                {"lastWorkoutDate": to_iso(self._clock())},
                merge=True,
            )
        except Exception as e:
            LOGGER.warning("Could not update lastWorkoutDate for %s: %s", self.uid, e)

    def _drop_flushed(self, flushed: SessionLogs) -> None:
        """Clear the flushed entries, keeping any added while the write was in flight."""
        remaining: SessionLogs = {}
        for exercise, entries in self._logs.items():
            sent = flushed.get(exercise, [])
            left = [e for e in entries if not any(e is s for s in sent)]
            if left:
                remaining[exercise] = left

        self._logs = remaining
        self._started_at = to_iso(self._clock()) if remaining else None
        self._persist()
