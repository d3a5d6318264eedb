"""Escrow Locks — per-escrow exclusive access inside one process.

Invariants:
    - At most one holder per escrow id at a time; different ids never block each other
    - Acquisition is bounded: timeout raises ContentionError (retryable), never blocks forever
    - The lock is released on every exit path, cancellation included
    - Waiters acquire in FIFO order (asyncio.Lock), so commit order == acquisition order
    - Idle entries are dropped: the registry only holds ids with a holder or waiter

Design Decisions:
    - asyncio.Lock per id over one global lock: escrows are independent streams
    - Complements the database row lock (SELECT ... FOR UPDATE), which covers
      multi-process deployments; this one keeps waiters off the connection pool
    - Bound to one event loop, like every asyncio primitive: one registry per app
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from escrow_ledger.core.domain_types import EscrowId
from escrow_ledger.core.errors import ContentionError, ErrorContext

logger = logging.getLogger(__name__)


class EscrowLockRegistry:
    """Hands out exclusive, time-bounded access to one escrow at a time."""

    def __init__(self, retry_after_ms: int = 250):
        self._locks: dict[EscrowId, asyncio.Lock] = {}
        self._users: dict[EscrowId, int] = {}
        self._retry_after_ms = retry_after_ms

    def is_locked(self, escrow_id: EscrowId) -> bool:
        lock = self._locks.get(escrow_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(
        self, escrow_id: EscrowId, timeout_seconds: float,
    ) -> AsyncIterator[None]:
        """Hold exclusive access to `escrow_id` for the body of the block."""
        lock = self._locks.setdefault(escrow_id, asyncio.Lock())
        self._users[escrow_id] = self._users.get(escrow_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(
                    "Timed out waiting for escrow lock",
                    extra={"escrow_id": escrow_id, "error_code": "CONTENTION"},
                )
                raise ContentionError(
                    f"Escrow {escrow_id} is busy; retry the command",
                    retry_after_ms=self._retry_after_ms,
                    context=ErrorContext(escrow_id=escrow_id),
                )
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[escrow_id] -= 1
            if self._users[escrow_id] == 0:
                del self._users[escrow_id]
                del self._locks[escrow_id]
