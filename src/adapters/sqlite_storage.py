"""SQLite storage adapter.

Implements the core DedupStorePort using a simple SQLite database.
"""

from __future__ import annotations

import sqlite3
import time
from typing import Callable


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the DedupStorePort contract."""

    def __init__(self, db_path: str, clock: Callable[[], float] = time.time) -> None:
        self._db_path = db_path
        self._clock = clock

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - seen: message keys already published, for at-most-once delivery
        """

        with self._connect() as conn:
            # seen is the durable half of the dedup ledger. The primary key is
            # the final arbiter when two deliveries race on the same message.
            # Fields:
            # - key: "tg:<chat_id>:<message_id>" (PRIMARY KEY)
            # - ts: epoch seconds of first observation for retention cleanup
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS seen (
                    key TEXT PRIMARY KEY,
                    ts INTEGER NOT NULL
                )
                """
            )

    def is_seen(self, key: str) -> bool:
        """Check if a key has already been recorded."""

        with self._connect() as conn:
            row = conn.execute("SELECT 1 FROM seen WHERE key = ?", (key,)).fetchone()
        return row is not None

    def try_mark_seen(self, key: str) -> bool:
        """Insert a key; a uniqueness violation means someone else recorded it."""

        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO seen (key, ts) VALUES (?, ?)",
                    (key, int(self._clock())),
                )
        except sqlite3.IntegrityError:
            return False
        return True

    def cleanup_seen(self, retention_days: int) -> int:
        """Delete keys older than the retention window and return the count."""

        cutoff = int(self._clock()) - retention_days * 24 * 60 * 60
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM seen WHERE ts < ?", (cutoff,))
            return cur.rowcount

    def count_seen(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM seen").fetchone()
        return int(row["total"])
