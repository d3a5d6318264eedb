"""Escrow Locks — tests for per-escrow, time-bounded exclusive access.

Tests cover:
    - Holding a lock blocks the same escrow until release
    - Different escrows never block each other
    - Timeout raises ContentionError with a retry hint
    - Cancellation while holding releases the lock
    - Waiters are served in arrival order
    - Idle entries are cleaned up
"""

import asyncio

import pytest

from escrow_ledger.core.errors import ContentionError
from escrow_ledger.infrastructure.escrow_locks import EscrowLockRegistry


async def test_same_escrow_times_out_while_held():
    locks = EscrowLockRegistry(retry_after_ms=123)
    async with locks.hold(1, timeout_seconds=1.0):
        with pytest.raises(ContentionError) as exc_info:
            async with locks.hold(1, timeout_seconds=0.05):
                pass
    assert exc_info.value.retryable is True
    assert exc_info.value.context.retry_after_ms == 123
    assert exc_info.value.context.escrow_id == 1


async def test_different_escrows_do_not_block():
    locks = EscrowLockRegistry()
    async with locks.hold(1, timeout_seconds=1.0):
        async with locks.hold(2, timeout_seconds=0.05):
            assert locks.is_locked(1)
            assert locks.is_locked(2)


async def test_lock_released_after_block():
    locks = EscrowLockRegistry()
    async with locks.hold(1, timeout_seconds=1.0):
        pass
    async with locks.hold(1, timeout_seconds=0.05):
        assert locks.is_locked(1)


async def test_lock_released_when_body_raises():
    locks = EscrowLockRegistry()
    with pytest.raises(RuntimeError):
        async with locks.hold(1, timeout_seconds=1.0):
            raise RuntimeError("boom")
    assert not locks.is_locked(1)


async def test_cancelled_holder_releases_lock():
    locks = EscrowLockRegistry()
    entered = asyncio.Event()

    async def holder():
        async with locks.hold(1, timeout_seconds=1.0):
            entered.set()
            await asyncio.sleep(10)

    task = asyncio.create_task(holder())
    await entered.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    async with locks.hold(1, timeout_seconds=0.05):
        pass


async def test_cancelled_waiter_leaves_no_trace():
    locks = EscrowLockRegistry()
    async with locks.hold(1, timeout_seconds=1.0):
        waiter = asyncio.create_task(_acquire_once(locks, 1))
        await asyncio.sleep(0.01)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
    assert len(locks) == 0


async def _acquire_once(locks, escrow_id):
    async with locks.hold(escrow_id, timeout_seconds=5.0):
        pass


async def test_waiters_served_in_arrival_order():
    locks = EscrowLockRegistry()
    order = []

    async def worker(name):
        async with locks.hold(1, timeout_seconds=1.0):
            order.append(name)
            await asyncio.sleep(0)

    async with locks.hold(1, timeout_seconds=1.0):
        tasks = []
        for name in ("a", "b", "c"):
            tasks.append(asyncio.create_task(worker(name)))
            await asyncio.sleep(0.01)
    await asyncio.gather(*tasks)
    assert order == ["a", "b", "c"]


async def test_idle_entries_are_dropped():
    locks = EscrowLockRegistry()
    async with locks.hold(1, timeout_seconds=1.0):
        assert len(locks) == 1
    assert len(locks) == 0
