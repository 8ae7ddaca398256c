"""SQLite storage adapters.

``SQLiteStorage`` implements the core QuickReplyRepository port and
``SQLiteSuppressionStore`` implements the SuppressionStore port, so several
worker processes sharing one database file also share suppression state.
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from core.models import Candidate, SuppressionEntry, SuppressionKey


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the QuickReplyRepository contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - quick_replies: per-tenant canned replies and their usage counters
        """

        with self._connect() as conn:
            # Fields:
            # - id: opaque quick reply id (PRIMARY KEY)
            # - tenant_id: owning business account
            # - shortcut: trigger phrase matched against inbound text
            # - content: reply body sent to the customer
            # - is_active: inactive replies are never matched
            # - usage_count: lifetime auto-reply sends
            # - usage_today_count: sends on the UTC day of last_used_at
            # - last_used_at: ISO timestamp of the last send
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS quick_replies (
                    id TEXT PRIMARY KEY,
                    tenant_id TEXT NOT NULL,
                    shortcut TEXT,
                    content TEXT NOT NULL DEFAULT '',
                    is_active INTEGER NOT NULL DEFAULT 1,
                    usage_count INTEGER NOT NULL DEFAULT 0,
                    usage_today_count INTEGER NOT NULL DEFAULT 0,
                    last_used_at TIMESTAMP
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_quick_replies_tenant ON quick_replies (tenant_id)"
            )

    def upsert_quick_reply(self, candidate: Candidate) -> None:
        """Insert or update a quick reply, keeping its usage counters."""

        if not candidate.tenant_id:
            raise ValueError(f"Quick reply {candidate.id} has no tenant_id")

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO quick_replies (id, tenant_id, shortcut, content, is_active)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    tenant_id = excluded.tenant_id,
                    shortcut = excluded.shortcut,
                    content = excluded.content,
                    is_active = excluded.is_active
                """,
                (
                    candidate.id,
                    candidate.tenant_id,
                    candidate.shortcut,
                    candidate.content,
                    int(candidate.active),
                ),
            )

    def list_quick_replies(self, tenant_id: str, include_inactive: bool = False) -> List[Candidate]:
        """Return a tenant's quick replies in creation order."""

        query = "SELECT * FROM quick_replies WHERE tenant_id = ?"
        if not include_inactive:
            query += " AND is_active = 1"
        query += " ORDER BY rowid"

        with self._connect() as conn:
            rows = conn.execute(query, (tenant_id,)).fetchall()
        return [
            Candidate(
                id=row["id"],
                shortcut=row["shortcut"],
                active=bool(row["is_active"]),
                content=row["content"],
                tenant_id=row["tenant_id"],
            )
            for row in rows
        ]

    def record_usage(self, candidate_id: str, used_at: datetime) -> None:
        """Bump usage counters; the daily counter restarts on a new UTC day."""

        used_at = used_at.astimezone(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE quick_replies SET
                    usage_count = usage_count + 1,
                    usage_today_count = CASE
                        WHEN substr(last_used_at, 1, 10) = ? THEN usage_today_count + 1
                        ELSE 1
                    END,
                    last_used_at = ?
                WHERE id = ?
                """,
                (used_at.date().isoformat(), used_at.isoformat(), candidate_id),
            )

    def get_usage(self, candidate_id: str) -> Optional[tuple[int, int]]:
        """Return (usage_count, usage_today_count) for a quick reply, if any."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT usage_count, usage_today_count FROM quick_replies WHERE id = ?",
                (candidate_id,),
            ).fetchone()
        return (int(row["usage_count"]), int(row["usage_today_count"])) if row else None


class SQLiteSuppressionStore:
    """SuppressionStore backed by a SQLite table.

    ``locked`` holds an immediate (write) transaction, so the check and the
    write for a key are serialized across threads and processes alike.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._lock = threading.RLock()
        self._active: Optional[sqlite3.Connection] = None

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        if self._active is not None:
            yield self._active
            return
        with self._connect() as conn:
            yield conn

    def init_db(self) -> None:
        """Create the auto_reply_state table if it does not exist."""

        with self._connect() as conn:
            # One row per (tenant_id, contact_id) holding the last auto-reply sent.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS auto_reply_state (
                    tenant_id TEXT NOT NULL,
                    contact_id TEXT NOT NULL,
                    last_sent_at INTEGER NOT NULL,
                    candidate_id TEXT NOT NULL,
                    PRIMARY KEY (tenant_id, contact_id)
                )
                """
            )

    def get(self, key: SuppressionKey) -> Optional[SuppressionEntry]:
        with self._lock, self._connection() as conn:
            row = conn.execute(
                """
                SELECT last_sent_at, candidate_id FROM auto_reply_state
                WHERE tenant_id = ? AND contact_id = ?
                """,
                key,
            ).fetchone()
        if row is None:
            return None
        return SuppressionEntry(timestamp=int(row["last_sent_at"]), candidate_id=row["candidate_id"])

    def set(self, key: SuppressionKey, entry: SuppressionEntry) -> None:
        tenant_id, contact_id = key
        with self._lock, self._connection() as conn:
            conn.execute(
                """
                INSERT INTO auto_reply_state (tenant_id, contact_id, last_sent_at, candidate_id)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(tenant_id, contact_id) DO UPDATE SET
                    last_sent_at = excluded.last_sent_at,
                    candidate_id = excluded.candidate_id
                """,
                (tenant_id, contact_id, entry.timestamp, entry.candidate_id),
            )

    def sweep(self, older_than: int) -> int:
        with self._lock, self._connection() as conn:
            cur = conn.execute(
                "DELETE FROM auto_reply_state WHERE last_sent_at < ?",
                (older_than,),
            )
            return cur.rowcount

    @contextmanager
    def locked(self, key: SuppressionKey) -> Iterator[None]:
        with self._lock:
            conn = sqlite3.connect(self._db_path, isolation_level=None)
            conn.row_factory = sqlite3.Row
            conn.execute("BEGIN IMMEDIATE")
            self._active = conn
            try:
                yield
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            else:
                conn.execute("COMMIT")
            finally:
                self._active = None
                conn.close()
