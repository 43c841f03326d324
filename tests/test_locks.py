"""Tests for the per-asset lock arena."""

import threading
import time

import pytest

from library_circulation.circulation.locks import AssetLockRegistry
from library_circulation.errors import ConcurrencyConflictError


class TestAssetLockRegistry:
    def test_same_id_same_lock(self):
        locks = AssetLockRegistry()
        assert locks.lock_for(1) is locks.lock_for(1)
        assert locks.lock_for(1) is not locks.lock_for(2)
        assert len(locks) == 2

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError):
            AssetLockRegistry(timeout_seconds=0)

    def test_hold_releases_on_exit(self):
        locks = AssetLockRegistry()
        with locks.hold(7):
            assert locks.lock_for(7).locked()
        assert not locks.lock_for(7).locked()

    def test_hold_releases_on_error(self):
        locks = AssetLockRegistry()
        with pytest.raises(RuntimeError), locks.hold(7):
            raise RuntimeError("boom")
        assert not locks.lock_for(7).locked()

    def test_timeout_raises_conflict(self):
        locks = AssetLockRegistry(timeout_seconds=0.05)
        with locks.hold(1):
            with pytest.raises(ConcurrencyConflictError, match="Asset 1"):
                with locks.hold(1):
                    pass

    def test_waiter_proceeds_once_released(self):
        locks = AssetLockRegistry(timeout_seconds=2.0)
        order = []
        holding = threading.Event()

        def first():
            with locks.hold(1):
                holding.set()
                time.sleep(0.1)
                order.append("first")

        thread = threading.Thread(target=first)
        thread.start()
        holding.wait(1)
        with locks.hold(1):
            order.append("second")
        thread.join()

        assert order == ["first", "second"]

    def test_different_ids_do_not_block(self):
        locks = AssetLockRegistry(timeout_seconds=0.05)
        with locks.hold(1), locks.hold(2):
            assert locks.lock_for(1).locked()
            assert locks.lock_for(2).locked()

    def test_concurrent_lock_for_creates_one_lock(self):
        locks = AssetLockRegistry()
        seen = []
        start = threading.Barrier(8)

        def grab():
            start.wait()
            seen.append(locks.lock_for(42))

        threads = [threading.Thread(target=grab) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len({id(lock) for lock in seen}) == 1
