"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

MATCH_EXACT = "exact"
MATCH_CONTAINS = "contains"
MATCH_KEYWORD = "keyword"
MATCH_FUZZY = "fuzzy"

# (tenant_id, contact_id)
SuppressionKey = Tuple[str, str]


@dataclass(frozen=True)
class Candidate:
    """A tenant's quick-reply template as seen by the matcher."""

    id: str
    shortcut: Optional[str]
    active: bool = True
    content: str = ""
    tenant_id: Optional[str] = None


@dataclass(frozen=True)
class MatchContext:
    """Per-message input to the auto-reply engine. Timestamp is in milliseconds."""

    tenant_id: str
    contact_id: str
    conversation_id: str
    text: str
    timestamp: int
    message_id: Optional[str] = None


@dataclass(frozen=True)
class MatchResult:
    """Winning candidate with its confidence and the strategy that scored it."""

    candidate: Candidate
    score: float
    match_type: str


@dataclass(frozen=True)
class SuppressionEntry:
    """Last auto-reply sent for one (tenant, contact) pair."""

    timestamp: int
    candidate_id: str


@dataclass(frozen=True)
class AutoReplyDecision:
    """Orchestrator output handed back to the ingestion caller."""

    candidate: Candidate
    match_type: str
    score: float
