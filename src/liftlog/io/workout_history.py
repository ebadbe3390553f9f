"""
Read side of committed workouts.

Loads a user's session documents and the coach advice kept on the legacy
log document.  Sessions written by a flush and by the legacy migration
share one collection and one shape.
"""

import logging

from ..core.config import DEFAULT_APP_ID
from ..core.models import PersistedWorkoutSession
from .document_store import DocumentStore
from .paths import legacy_logs_doc, workout_sessions_collection
from .serializers import ValidationError, dict_to_workout_session, parse_iso

LOGGER = logging.getLogger(__name__)


class WorkoutHistory:
    """Committed sessions and coach advice of one user."""

    def __init__(self, store: DocumentStore, uid: str, *, app_id: str = DEFAULT_APP_ID):
        self.store = store
        self.uid = uid
        self.app_id = app_id

    async def load_sessions(self) -> list[PersistedWorkoutSession]:
        """
        Load every committed session, newest first.

        Documents that do not parse are skipped with a warning rather than
        hiding the rest of the history.
        """
        docs = await self.store.list(workout_sessions_collection(self.app_id, self.uid))

        sessions: list[PersistedWorkoutSession] = []
        for doc_id, data in docs:
            try:
                session = dict_to_workout_session(data, doc_id)
                parse_iso(session.date)
            except ValidationError as e:
                LOGGER.warning("Skipping malformed session %s for %s: %s", doc_id, self.uid, e)
                continue
            sessions.append(session)

        sessions.sort(key=lambda s: parse_iso(s.date), reverse=True)
        return sessions

    async def load_coach_advice(self) -> str | None:
        """Saved coach advice, or None."""
        data = await self.store.get(legacy_logs_doc(self.app_id, self.uid))
        if not data:
            return None
        return data.get("coachAdvice") or None

    async def save_coach_advice(self, advice: str) -> bool:
        """
        Store coach advice next to the migration flag.

        Returns:
            True if saved; False if the store rejected the write (logged)
        """
        try:
            await self.store.set(
                legacy_logs_doc(self.app_id, self.uid), {"coachAdvice": advice}, merge=True
            )
        except Exception as e:
            LOGGER.error("Could not save coach advice for %s: %s", self.uid, e)
            return False
        return True
