"""Unit tests for the per-order lock registry."""

import asyncio
import gc

import pytest

from src.core import order_locks
from src.core.order_locks import OrderLockRegistry


class TestOrderLockRegistry:
    """Tests for OrderLockRegistry."""

    def test_same_order_shares_a_lock(self) -> None:
        registry = OrderLockRegistry()

        first = registry.get_lock("order-1")
        second = registry.get_lock("order-1")

        assert first is second
        assert registry.get_lock("order-2") is not first

    def test_unreferenced_locks_are_dropped(self) -> None:
        registry = OrderLockRegistry()
        lock = registry.get_lock("order-1")
        assert registry.active_count() == 1

        del lock
        gc.collect()

        assert registry.active_count() == 0

    @pytest.mark.asyncio
    async def test_hold_serializes_same_order(self) -> None:
        registry = OrderLockRegistry()
        events: list[str] = []

        async def worker(name: str) -> None:
            async with registry.hold("order-1"):
                events.append(f"{name}-start")
                await asyncio.sleep(0)
                events.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert events == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_different_orders_do_not_block(self) -> None:
        registry = OrderLockRegistry()

        async with registry.hold("order-1"):
            assert registry.is_locked("order-1") is True
            assert registry.is_locked("order-2") is False
            async with registry.hold("order-2"):
                assert registry.is_locked("order-2") is True


class TestLifecycle:
    """Tests for init/shutdown of the global registry."""

    @pytest.mark.asyncio
    async def test_init_and_shutdown(self) -> None:
        registry = await order_locks.init_order_locks()
        assert order_locks.get_order_locks() is registry

        await order_locks.shutdown_order_locks()

        assert order_locks.get_order_locks() is not registry
        await order_locks.shutdown_order_locks()
