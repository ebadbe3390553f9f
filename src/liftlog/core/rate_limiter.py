"""
Per-user, per-action daily quota for expensive (AI) calls.

Each (user, action) pair has one counter document holding ``count`` and
``resetAt``, the next UTC midnight after the window opened.  Once
``now >= resetAt`` the stored count is ignored and a new window starts.

Policy:
- Quota exhaustion is the only reason to deny; it is a return value.
- Any store error while checking fails open (the action is allowed).
- Check-then-write is not transactional.  Two devices racing near the limit
  can each take the last slot, so the limit is soft by one per racer.
  Hard enforcement belongs to the server, with an atomic increment.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from ..io.document_store import DocumentStore
from ..io.paths import rate_limit_doc
from ..io.serializers import (
    ValidationError,
    dict_to_rate_limit_counter,
    parse_iso,
    rate_limit_counter_to_dict,
    to_iso,
    utc_now,
)
from .config import DEFAULT_APP_ID, DEV_UNLIMITED_REMAINING, RATE_LIMIT_CHECK_ERROR_MESSAGE
from .models import RateLimitCounter, RateLimitStatus

LOGGER = logging.getLogger(__name__)


def next_utc_midnight(now: datetime) -> datetime:
    """
    Start of the UTC day after *now*.

    Both the status read and the increment use this, so they always agree
    on when a window ends.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    today = now.astimezone(timezone.utc).date()
    return datetime.combine(today + timedelta(days=1), datetime.min.time(), tzinfo=timezone.utc)


def limit_reached_message(limit: int) -> str:
    return f"You have reached the limit of {limit} uses per day"


class RateLimiter:
    """
    Daily quota for one action of one user.

    ``status`` always holds the most recent view of the quota for display;
    it is refreshed by check_rate_limit, check_and_increment and release.
    """

    def __init__(
        self,
        store: DocumentStore,
        uid: str,
        action: str,
        limit: int,
        *,
        app_id: str = DEFAULT_APP_ID,
        enforce: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ):
        if limit < 0:
            raise ValueError("limit must be non-negative")
        self.store = store
        self.uid = uid
        self.action = action
        self.limit = limit
        self.app_id = app_id
        self.enforce = enforce
        self._clock = clock
        self._path = rate_limit_doc(app_id, uid, action)
        self.status = RateLimitStatus(
            can_perform=True,
            remaining=limit if enforce else DEV_UNLIMITED_REMAINING,
            limit=limit,
        )

    def _now(self) -> datetime:
        now = self._clock()
        return now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)

    def _unlimited(self) -> RateLimitStatus:
        self.status = RateLimitStatus(
            can_perform=True, remaining=DEV_UNLIMITED_REMAINING, limit=self.limit
        )
        return self.status

    def _set_status(self, count: int, reset_at: str, error: str | None = None) -> RateLimitStatus:
        remaining = max(0, self.limit - count)
        self.status = RateLimitStatus(
            can_perform=remaining > 0,
            remaining=remaining,
            limit=self.limit,
            reset_at=reset_at,
            error=error,
        )
        return self.status

    async def _read(self) -> RateLimitCounter | None:
        """The stored counter; a malformed document reads as absent and gets rewritten."""
        data = await self.store.get(self._path)
        if data is None:
            return None
        try:
            return dict_to_rate_limit_counter(data)
        except ValidationError as e:
            LOGGER.warning("Resetting malformed rate limit counter %s: %s", self._path, e)
            return None

    def _expired(self, counter: RateLimitCounter, now: datetime) -> bool:
        return now >= parse_iso(counter.reset_at)

    async def check_rate_limit(self) -> RateLimitStatus:
        """
        Report the remaining quota without consuming or writing anything.

        An absent or expired counter reports a full window ending at the
        next UTC midnight.
        """
        if not self.enforce:
            return self._unlimited()

        now = self._now()
        try:
            counter = await self._read()
        except Exception as e:
            LOGGER.warning("Rate limit status for %s/%s unavailable: %s", self.uid, self.action, e)
            self.status = RateLimitStatus(
                can_perform=True,
                remaining=self.status.remaining,
                limit=self.limit,
                reset_at=self.status.reset_at,
                error=RATE_LIMIT_CHECK_ERROR_MESSAGE,
            )
            return self.status

        if counter is None or self._expired(counter, now):
            return self._set_status(0, to_iso(next_utc_midnight(now)))
        return self._set_status(counter.count, counter.reset_at)

    async def check_and_increment(self) -> bool:
        """
        Consume one use if the quota allows it.

        Returns:
            True if the caller may proceed (including when the check itself
            failed), False only when today's quota is used up
        """
        if not self.enforce:
            self._unlimited()
            return True

        now = self._now()
        now_iso = to_iso(now)
        try:
            counter = await self._read()

            if self.limit == 0:
                self._set_status(0, to_iso(next_utc_midnight(now)), limit_reached_message(0))
                return False

            if counter is None or self._expired(counter, now):
                # New window: start at 1, never increment stale state
                fresh = RateLimitCounter(
                    count=1, reset_at=to_iso(next_utc_midnight(now)), last_action=now_iso
                )
                await self.store.set(self._path, rate_limit_counter_to_dict(fresh))
                self._set_status(fresh.count, fresh.reset_at)
                return True

            if counter.count >= self.limit:
                self._set_status(counter.count, counter.reset_at, limit_reached_message(self.limit))
                LOGGER.info("Rate limit reached for %s/%s", self.uid, self.action)
                return False

            updated = RateLimitCounter(
                count=counter.count + 1, reset_at=counter.reset_at, last_action=now_iso
            )
            await self.store.set(self._path, rate_limit_counter_to_dict(updated))
            self._set_status(updated.count, updated.reset_at)
            return True

        except Exception as e:
            LOGGER.warning(
                "Rate limit check failed for %s/%s, allowing: %s", self.uid, self.action, e
            )
            self.status = RateLimitStatus(
                can_perform=True,
                remaining=self.status.remaining,
                limit=self.limit,
                reset_at=self.status.reset_at,
                error=RATE_LIMIT_CHECK_ERROR_MESSAGE,
            )
            return True

    async def release(self) -> None:
        """
        Give back one use after the gated call failed.

        Only a live window with a positive count is decremented.  Errors are
        logged and never raised.
        """
        if not self.enforce:
            return

        try:
            counter = await self._read()
            if counter is None or counter.count <= 0 or self._expired(counter, self._now()):
                return
            released = RateLimitCounter(
                count=counter.count - 1,
                reset_at=counter.reset_at,
                last_action=counter.last_action,
            )
            await self.store.set(self._path, rate_limit_counter_to_dict(released))
            self._set_status(released.count, released.reset_at)
        except Exception as e:
            LOGGER.warning("Could not release quota for %s/%s: %s", self.uid, self.action, e)
