"""Dedup ledger: at-most-once publishing per message key (core domain).

The durable store is the source of truth; the in-memory set only closes the
window between concurrent checks of the same key and absorbs near-duplicate
retries for a short while after a check completes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Set

from core.config import DedupConfig
from core.ports import DedupStorePort

LOGGER = logging.getLogger(__name__)


class DedupLedger:
    """Check-and-insert over a durable store guarded by per-key locks."""

    def __init__(self, store: DedupStorePort, config: DedupConfig = DedupConfig()) -> None:
        self._store = store
        self._config = config
        self._in_flight: Set[str] = set()

    def purge_expired(self) -> int:
        """Drop ledger rows older than the retention window (run at startup)."""

        removed = self._store.cleanup_seen(self._config.retention_days)
        LOGGER.info("Dedup cleanup removed %s keys older than %s days", removed, self._config.retention_days)
        return removed

    def is_locked(self, key: str) -> bool:
        return key in self._in_flight

    async def already_seen(self, key: str) -> bool:
        """Return True when the key must not be published again."""

        if key in self._in_flight:
            LOGGER.debug("Dedup lock held for %s", key)
            return True

        self._in_flight.add(key)
        try:
            if self._store.is_seen(key):
                return True
            # A False insert means another writer got there first.
            return not self._store.try_mark_seen(key)
        except Exception:
            LOGGER.exception("Dedup store failure for %s, treating as seen", key)
            return True
        finally:
            self._schedule_release(key)

    def _schedule_release(self, key: str) -> None:
        delay = self._config.lock_release_seconds
        if delay <= 0:
            self._in_flight.discard(key)
            return
        asyncio.get_running_loop().call_later(delay, self._in_flight.discard, key)
