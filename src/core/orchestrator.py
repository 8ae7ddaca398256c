"""Auto-reply decision entry point.

Combines the matcher and the suppression ledger. Nothing raised in here ever
reaches message ingestion: a failure means no auto-reply for that message.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from core.matcher import find_best_match
from core.models import AutoReplyDecision, Candidate, MatchContext
from core.suppression import SuppressionLedger

LOGGER = logging.getLogger(__name__)


class AutoReplyOrchestrator:
    """Decides whether an inbound message gets an automatic reply."""

    def __init__(
        self,
        ledger: SuppressionLedger,
        stopwords: Optional[frozenset[str]] = None,
    ) -> None:
        self._ledger = ledger
        self._stopwords = stopwords

    def process_auto_reply(
        self,
        context: MatchContext,
        candidates: Iterable[Candidate],
    ) -> Optional[AutoReplyDecision]:
        """Return the reply to send for this message, or None."""

        try:
            match = find_best_match(context.text, candidates, self._stopwords)
            if match is None:
                return None

            if not self._ledger.try_acquire(context, match.candidate.id):
                return None

            return AutoReplyDecision(
                candidate=match.candidate,
                match_type=match.match_type,
                score=match.score,
            )
        except Exception:
            LOGGER.exception(
                "Error processing auto-reply for %s in conversation %s",
                context.contact_id,
                context.conversation_id,
            )
            return None
