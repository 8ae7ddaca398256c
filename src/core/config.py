"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass

RATE_LIMIT_INTERVAL_MS = 5000
DUPLICATE_WINDOW_MS = 60000


@dataclass(frozen=True)
class AutoReplyConfig:
    """Suppression windows for the auto-reply ledger, in milliseconds."""

    rate_limit_ms: int = RATE_LIMIT_INTERVAL_MS
    duplicate_window_ms: int = DUPLICATE_WINDOW_MS

    def __post_init__(self) -> None:
        if self.rate_limit_ms < 0 or self.duplicate_window_ms < 0:
            raise ValueError("Suppression windows must be non-negative")
