"""Auto-reply suppression ledger (core domain).

Keeps customers from being spammed: a global cooldown per (tenant, contact)
and a longer window during which the same quick reply is not repeated.

Expiry of the key being evaluated is decided from that message's own
timestamp. The opportunistic sweep that bounds memory runs against a
separate clock that only moves forward, so a message from one contact never
evicts another contact's entry.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from core.config import AutoReplyConfig
from core.models import MatchContext, SuppressionEntry, SuppressionKey
from core.ports import SuppressionStore

LOGGER = logging.getLogger(__name__)


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


def suppression_key(context: MatchContext) -> SuppressionKey:
    return (context.tenant_id, context.contact_id)


class HighWaterClock:
    """Clock reporting the latest timestamp it has been advanced to.

    Used when timestamps do not come from the wall clock, e.g. replaying a
    recorded, time-sorted message log.
    """

    def __init__(self, start: int = 0) -> None:
        self._now = start

    def advance(self, timestamp: int) -> None:
        self._now = max(self._now, timestamp)

    def __call__(self) -> int:
        return self._now


class SuppressionLedger:
    """Rate limiting and duplicate suppression on top of a SuppressionStore.

    ``clock`` must return milliseconds on the same scale as
    ``MatchContext.timestamp``; it defaults to the wall clock, which matches
    WhatsApp webhook timestamps.
    """

    def __init__(
        self,
        store: SuppressionStore,
        config: Optional[AutoReplyConfig] = None,
        clock: Callable[[], int] = wall_clock_ms,
    ) -> None:
        self._store = store
        self._config = config or AutoReplyConfig()
        self._clock = clock
        self._swept_at: Optional[int] = None

    def sweep(self, now: Optional[int] = None) -> int:
        """Drop entries that fell out of the duplicate window.

        The sweep time never goes backwards, even if the clock does.
        """

        if now is None:
            now = self._clock()
        if self._swept_at is not None and now < self._swept_at:
            now = self._swept_at
        self._swept_at = now

        removed = self._store.sweep(now - self._config.duplicate_window_ms)
        if removed:
            LOGGER.debug("Swept %s expired suppression entries", removed)
        return removed

    def _is_suppressed(self, context: MatchContext, candidate_id: str) -> bool:
        entry = self._store.get(suppression_key(context))
        if entry is None:
            return False

        elapsed = context.timestamp - entry.timestamp
        if elapsed < self._config.rate_limit_ms:
            LOGGER.debug(
                "Skipping auto-reply to %s: rate limited (%s ms since last)",
                context.contact_id,
                elapsed,
            )
            return True

        if entry.candidate_id == candidate_id and elapsed < self._config.duplicate_window_ms:
            LOGGER.debug(
                "Skipping duplicate auto-reply %s to %s (%s ms since last)",
                candidate_id,
                context.contact_id,
                elapsed,
            )
            return True

        return False

    def should_skip(self, context: MatchContext, candidate_id: str) -> bool:
        """Return True if sending ``candidate_id`` now would be a repeat or too soon."""

        self.sweep()
        return self._is_suppressed(context, candidate_id)

    def mark_sent(self, context: MatchContext, candidate_id: str) -> None:
        """Record that ``candidate_id`` was sent at the context timestamp."""

        self._store.set(
            suppression_key(context),
            SuppressionEntry(timestamp=context.timestamp, candidate_id=candidate_id),
        )

    def try_acquire(self, context: MatchContext, candidate_id: str) -> bool:
        """Check and record in one critical section; True means send the reply.

        Two messages from the same contact evaluated at the same time cannot
        both pass the check, since the second one sees the first one's entry.
        """

        self.sweep()
        with self._store.locked(suppression_key(context)):
            if self._is_suppressed(context, candidate_id):
                return False
            self.mark_sent(context, candidate_id)
        return True
