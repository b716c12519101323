from __future__ import annotations

import asyncio

from adapters.sqlite_storage import SQLiteStorage
from core.config import DedupConfig
from core.ledger import DedupLedger


class FakeStore:
    def __init__(self) -> None:
        self.keys: set[str] = set()
        self.fail = False

    def is_seen(self, key: str) -> bool:
        if self.fail:
            raise RuntimeError("disk full")
        return key in self.keys

    def try_mark_seen(self, key: str) -> bool:
        if key in self.keys:
            return False
        self.keys.add(key)
        return True

    def cleanup_seen(self, retention_days: int) -> int:
        return 0


class RacingStore(FakeStore):
    """Another writer inserts the key between the check and the insert."""

    def is_seen(self, key: str) -> bool:
        self.keys.add(key)
        return False


def test_concurrent_checks_publish_once() -> None:
    ledger = DedupLedger(FakeStore())

    async def scenario():
        return await asyncio.gather(ledger.already_seen("tg:1:5"), ledger.already_seen("tg:1:5"))

    assert asyncio.run(scenario()) == [False, True]


def test_key_stays_seen_after_lock_release() -> None:
    store = FakeStore()
    ledger = DedupLedger(store, DedupConfig(lock_release_seconds=0))

    async def scenario():
        first = await ledger.already_seen("tg:1:5")
        assert not ledger.is_locked("tg:1:5")
        second = await ledger.already_seen("tg:1:5")
        return first, second

    assert asyncio.run(scenario()) == (False, True)


def test_lock_is_released_after_delay() -> None:
    ledger = DedupLedger(FakeStore(), DedupConfig(lock_release_seconds=0.01))

    async def scenario():
        await ledger.already_seen("tg:1:5")
        locked = ledger.is_locked("tg:1:5")
        await asyncio.sleep(0.05)
        return locked, ledger.is_locked("tg:1:5")

    assert asyncio.run(scenario()) == (True, False)


def test_uniqueness_violation_counts_as_seen() -> None:
    ledger = DedupLedger(RacingStore(), DedupConfig(lock_release_seconds=0))
    assert asyncio.run(ledger.already_seen("tg:1:5")) is True


def test_store_failure_counts_as_seen() -> None:
    store = FakeStore()
    store.fail = True
    ledger = DedupLedger(store, DedupConfig(lock_release_seconds=0))
    assert asyncio.run(ledger.already_seen("tg:1:5")) is True


def test_sqlite_storage_primary_key_and_cleanup(tmp_path) -> None:
    now = [1_700_000_000.0]
    storage = SQLiteStorage(str(tmp_path / "seen.db"), clock=lambda: now[0])
    storage.init_db()

    assert storage.try_mark_seen("tg:1:1") is True
    assert storage.try_mark_seen("tg:1:1") is False
    assert storage.is_seen("tg:1:1")

    now[0] += 8 * 24 * 60 * 60
    storage.try_mark_seen("tg:1:2")
    assert storage.cleanup_seen(7) == 1
    assert not storage.is_seen("tg:1:1")
    assert storage.count_seen() == 1


def test_ledger_with_sqlite_storage(tmp_path) -> None:
    storage = SQLiteStorage(str(tmp_path / "seen.db"))
    storage.init_db()
    ledger = DedupLedger(storage, DedupConfig(lock_release_seconds=0))

    async def scenario():
        return [await ledger.already_seen("tg:9:1") for _ in range(2)]

    assert asyncio.run(scenario()) == [False, True]
    assert ledger.purge_expired() == 0
