"""Per-order lock registry serializing mutations of a single order."""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

logger = logging.getLogger(__name__)


class OrderLockRegistry:
    """Hands out one asyncio.Lock per order id.

    Locks are held weakly, so an entry disappears as soon as no coroutine is
    waiting on or holding it. Item writes and the follow-up total
    recomputation for the same order run under the same lock, which keeps a
    stale total from overwriting a fresher one.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def get_lock(self, order_id: UUID | str) -> asyncio.Lock:
        """Return the lock for an order, creating it on first use."""
        key = str(order_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, order_id: UUID | str) -> AsyncIterator[None]:
        """Hold the order's lock for the duration of the block."""
        lock = self.get_lock(order_id)
        async with lock:
            yield

    def is_locked(self, order_id: UUID | str) -> bool:
        """Check whether an order is currently locked."""
        lock = self._locks.get(str(order_id))
        return lock is not None and lock.locked()

    def active_count(self) -> int:
        """Number of orders with a live lock."""
        return len(self._locks)


# Global singleton instance
_order_locks: OrderLockRegistry | None = None


def get_order_locks() -> OrderLockRegistry:
    """Get or create the global order lock registry."""
    global _order_locks
    if _order_locks is None:
        _order_locks = OrderLockRegistry()
    return _order_locks


async def init_order_locks() -> OrderLockRegistry:
    """Initialize the order lock registry. Call at app startup."""
    registry = get_order_locks()
    logger.info("Order lock registry ready")
    return registry


async def shutdown_order_locks() -> None:
    """Drop the order lock registry. Call at app shutdown."""
    global _order_locks
    if _order_locks is not None:
        held = _order_locks.active_count()
        if held:
            logger.warning("Shutting down with %d order locks still referenced", held)
        _order_locks = None
