"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for suppression state, quick-reply storage,
and reply delivery so that the core can be reused with different backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import ContextManager, List, Optional, Protocol

from core.models import Candidate, MatchContext, SuppressionEntry, SuppressionKey


class SuppressionStore(Protocol):
    """Keyed store for the last auto-reply sent per (tenant, contact)."""

    def get(self, key: SuppressionKey) -> Optional[SuppressionEntry]:
        ...

    def set(self, key: SuppressionKey, entry: SuppressionEntry) -> None:
        ...

    def sweep(self, older_than: int) -> int:
        """Remove entries with a timestamp before ``older_than``; return the count."""
        ...

    def locked(self, key: SuppressionKey) -> ContextManager[None]:
        """Critical section for read-modify-write on one key."""
        ...


class QuickReplyRepository(Protocol):
    """Quick-reply storage operations required by the inbound processor."""

    def list_quick_replies(self, tenant_id: str) -> List[Candidate]:
        ...

    def record_usage(self, candidate_id: str, used_at: datetime) -> None:
        ...


class ReplySender(Protocol):
    """Outbound delivery of a chosen quick reply."""

    async def send(self, context: MatchContext, candidate: Candidate) -> None:
        ...
