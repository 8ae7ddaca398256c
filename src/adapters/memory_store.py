"""In-memory suppression store adapter.

Implements the core SuppressionStore port with a plain dict. State is
process-wide and lost on restart, which at worst allows one extra reply.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from core.models import SuppressionEntry, SuppressionKey


class _KeyLock:
    __slots__ = ("lock", "waiters")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.waiters = 0


class InMemorySuppressionStore:
    """Dict-backed store with one lock per key in use."""

    def __init__(self) -> None:
        self._entries: dict[SuppressionKey, SuppressionEntry] = {}
        self._key_locks: dict[SuppressionKey, _KeyLock] = {}
        self._guard = threading.Lock()

    def get(self, key: SuppressionKey) -> Optional[SuppressionEntry]:
        return self._entries.get(key)

    def set(self, key: SuppressionKey, entry: SuppressionEntry) -> None:
        with self._guard:
            self._entries[key] = entry

    def sweep(self, older_than: int) -> int:
        with self._guard:
            expired = [key for key, entry in self._entries.items() if entry.timestamp < older_than]
            for key in expired:
                del self._entries[key]
            return len(expired)

    @contextmanager
    def locked(self, key: SuppressionKey) -> Iterator[None]:
        # Locks are reference counted so idle keys do not accumulate.
        with self._guard:
            key_lock = self._key_locks.get(key)
            if key_lock is None:
                key_lock = self._key_locks[key] = _KeyLock()
            key_lock.waiters += 1
        try:
            with key_lock.lock:
                yield
        finally:
            with self._guard:
                key_lock.waiters -= 1
                if key_lock.waiters == 0:
                    del self._key_locks[key]

    def __len__(self) -> int:
        return len(self._entries)
