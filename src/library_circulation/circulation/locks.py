"""
Per-asset locks.

One lock per asset id, created the first time the id is seen and kept for
the life of the registry. Requests for the same asset queue on its lock;
requests for different assets never contend. Waiting is bounded: a request
that cannot get the lock within the timeout fails with
ConcurrencyConflictError instead of blocking.
"""

import logging
import threading
from collections.abc import Generator
from contextlib import contextmanager

from ..errors import ConcurrencyConflictError

logger = logging.getLogger(__name__)


class AssetLockRegistry:
    """Arena of locks indexed by asset id."""

    def __init__(self, timeout_seconds: float = 5.0):
        if timeout_seconds <= 0:
            raise ValueError("Lock timeout must be positive")
        self.timeout_seconds = timeout_seconds
        self._locks: dict[int, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def lock_for(self, asset_id: int) -> threading.Lock:
        """The lock guarding ``asset_id``; the same object on every call."""
        with self._registry_lock:
            lock = self._locks.get(asset_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[asset_id] = lock
            return lock

    @contextmanager
    def hold(self, asset_id: int) -> Generator[None, None, None]:
        """
        Hold the asset's lock for the duration of the block.

        Raises:
            ConcurrencyConflictError: If the lock is not free within the timeout
        """
        lock = self.lock_for(asset_id)
        if not lock.acquire(timeout=self.timeout_seconds):
            logger.warning(
                "Timed out after %.1fs waiting for lock on asset %s",
                self.timeout_seconds,
                asset_id,
            )
            raise ConcurrencyConflictError(
                f"Asset {asset_id} is busy with another request; try again"
            )
        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)
