"""Core inbound message processing pipeline.

This module is integration-agnostic. It only relies on ports for quick-reply
storage and reply delivery, enabling other channels or adapters without
changes here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from core.models import AutoReplyDecision, MatchContext
from core.orchestrator import AutoReplyOrchestrator
from core.ports import QuickReplyRepository, ReplySender

LOGGER = logging.getLogger(__name__)


class InboundMessageProcessor:
    """Loads quick replies, asks the orchestrator, sends, and counts usage."""

    def __init__(
        self,
        orchestrator: AutoReplyOrchestrator,
        repository: QuickReplyRepository,
        sender: ReplySender,
    ) -> None:
        self._orchestrator = orchestrator
        self._repository = repository
        self._sender = sender

    async def handle(self, context: MatchContext) -> Optional[AutoReplyDecision]:
        """Process one inbound message; return the auto-reply that was sent."""

        # Media-only messages without captions never trigger a reply
        if not context.text.strip():
            return None

        candidates = self._repository.list_quick_replies(context.tenant_id)
        if not candidates:
            return None

        decision = self._orchestrator.process_auto_reply(context, candidates)
        if decision is None:
            return None

        try:
            await self._sender.send(context, decision.candidate)
        except Exception:
            LOGGER.error(
                "Failed to send auto-reply %s to %s",
                decision.candidate.id,
                context.contact_id,
            )
            raise

        # Usage is only counted for replies that actually went out.
        used_at = datetime.fromtimestamp(context.timestamp / 1000, tz=timezone.utc)
        self._repository.record_usage(decision.candidate.id, used_at)
        LOGGER.info(
            "Auto-reply %s sent to %s (%s, %.3f)",
            decision.candidate.id,
            context.contact_id,
            decision.match_type,
            decision.score,
        )
        return decision
