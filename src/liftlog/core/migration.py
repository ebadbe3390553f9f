"""
One-time migration of the legacy single log document to session documents.

The legacy schema kept every entry of a user in one document
(``app_data/logs``), either as ``{logs: {exercise: [...]}}`` or as a flat
``{exercise: [...]}`` map mixed with metadata such as ``coachAdvice``.
It had no notion of a session, so sessions are rebuilt from entries that
share the exact same ``date`` string: the client logged every exercise of a
workout under one timestamp.

Safety properties:
- Idempotent: session documents are written by deterministic id, so a
  replay overwrites instead of duplicating.
- All-or-retry: ``migratedToSessions`` is set in the same batch as the last
  chunk of sessions.  Any failure leaves it unset and the next run starts
  over.
- Bounded: each batch stays below the store's write ceiling and chunks are
  committed one after another.
"""

import logging
from dataclasses import dataclass, field

from ..io.document_store import DocumentStore
from ..io.paths import legacy_logs_doc, workout_session_doc
from ..io.serializers import logs_to_dict, parse_iso, parse_legacy_document, to_iso
from .config import BATCH_WRITE_LIMIT, DEFAULT_APP_ID, MIGRATION_CHUNK_SIZE, MIGRATION_ERROR_MESSAGE
from .models import PersistedWorkoutSession, SessionLogs

LOGGER = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    """What one run did; for logging and the CLI."""

    sessions_written: int = 0
    batches_committed: int = 0
    skipped_entries: int = 0
    already_migrated: bool = False
    chunk_sizes: list[int] = field(default_factory=list)


def group_into_sessions(logs: SessionLogs) -> list[PersistedWorkoutSession]:
    """
    Rebuild sessions from legacy logs, one per distinct entry timestamp.

    The session id is the timestamp normalised to ``toISOString`` form, and
    entries are grouped by that id so that two spellings of the same instant
    cannot produce two writes to one document.  Sessions come out in order of
    first appearance; exercises and entries keep their original order.

    Raises:
        ValidationError: If an entry's date is not a parseable timestamp
    """
    sessions: dict[str, PersistedWorkoutSession] = {}
    for exercise, entries in logs.items():
        for entry in entries:
            session_id = to_iso(parse_iso(entry.date))
            session = sessions.get(session_id)
            if session is None:
                session = PersistedWorkoutSession(id=session_id, date=entry.date)
                sessions[session_id] = session
            session.logs.setdefault(exercise, []).append(entry)
    return list(sessions.values())


def chunked(items: list, size: int) -> list[list]:
    """Split *items* into consecutive lists of at most *size*."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [items[i:i + size] for i in range(0, len(items), size)]


class LegacyLogMigrator:
    """
    Migrates one user's legacy log document.

    Exposes ``migration_done`` and ``migration_error`` for the caller to
    render; run() is safe to call on every start-up.
    """

    def __init__(
        self,
        store: DocumentStore,
        uid: str,
        *,
        app_id: str = DEFAULT_APP_ID,
        chunk_size: int = MIGRATION_CHUNK_SIZE,
    ):
        # One slot per batch is reserved for the completion flag
        if not 0 < chunk_size < BATCH_WRITE_LIMIT:
            raise ValueError(
                f"chunk_size must be between 1 and {BATCH_WRITE_LIMIT - 1}, got {chunk_size}"
            )
        self.store = store
        self.uid = uid
        self.app_id = app_id
        self.chunk_size = chunk_size
        self.is_migrating = False
        self.migration_done = False
        self.migration_error: str | None = None
        self.report = MigrationReport()

    @property
    def _legacy_path(self) -> str:
        return legacy_logs_doc(self.app_id, self.uid)

    def _completion_document(self, coach_advice: str | None) -> dict:
        return {"coachAdvice": coach_advice, "migratedToSessions": True}

    async def run(self) -> bool:
        """
        Migrate if needed.

        Returns:
            True once the user's data is known to be migrated; False if
            this run failed (see ``migration_error``)
        """
        if self.is_migrating or self.migration_done:
            return self.migration_done

        self.is_migrating = True
        self.migration_error = None
        self.report = MigrationReport()
        try:
            await self._migrate()
            self.migration_done = True
        except Exception:
            LOGGER.exception("Legacy log migration failed for %s", self.uid)
            self.migration_error = MIGRATION_ERROR_MESSAGE
        finally:
            self.is_migrating = False
        return self.migration_done

    async def _migrate(self) -> None:
        data = await self.store.get(self._legacy_path)
        if data is None:
            LOGGER.debug("No legacy log document for %s", self.uid)
            return

        legacy = parse_legacy_document(data)
        if legacy.migrated:
            self.report.already_migrated = True
            return

        self.report.skipped_entries = legacy.skipped_entries
        if legacy.skipped_entries:
            LOGGER.warning(
                "Skipping %d legacy entries without a date for %s",
                legacy.skipped_entries,
                self.uid,
            )

        sessions = group_into_sessions(legacy.logs)
        if not sessions:
            await self.store.set(self._legacy_path, self._completion_document(legacy.coach_advice))
            LOGGER.info("Legacy log document for %s had no entries; marked migrated", self.uid)
            return

        chunks = chunked(sessions, self.chunk_size)
        for index, chunk in enumerate(chunks):
            batch = self.store.batch()
            for session in chunk:
                batch.set(
                    workout_session_doc(self.app_id, self.uid, session.id),
                    {"id": session.id, "date": session.date, "logs": logs_to_dict(session.logs)},
                )
            if index == len(chunks) - 1:
                batch.set(self._legacy_path, self._completion_document(legacy.coach_advice))

            # The completion flag rides in the last batch; chunks commit in order
            await batch.commit()
            self.report.batches_committed += 1
            self.report.sessions_written += len(chunk)
            self.report.chunk_sizes.append(len(batch))
            LOGGER.debug(
                "Committed migration batch %d/%d for %s (%d ops)",
                index + 1,
                len(chunks),
                self.uid,
                len(batch),
            )

        LOGGER.info(
            "Migrated %d legacy sessions for %s in %d batches (%s layout)",
            self.report.sessions_written,
            self.uid,
            self.report.batches_committed,
            legacy.shape,
        )
