"""Escrow Concurrency — serialized submissions, bounded waits and abort-on-cancel.

Invariants:
    - Mutually exclusive commands racing on one escrow: exactly one commits
    - The loser is evaluated against the winner's state, never against a stale read
    - A held lock makes submit fail with a retryable ContentionError after the timeout
    - Cancelling a submit that already appended leaves no event and frees the lock

Design Decisions:
    - Gate pattern: the store transaction's append is wrapped to park on an asyncio.Event,
      which pins the submission inside its critical section deterministically
"""

import asyncio

import pytest

from escrow_ledger.core.domain_types import EscrowStatus
from escrow_ledger.core.errors import ContentionError, InvalidTransitionError
from escrow_ledger.infrastructure.memory_event_store import (
    InMemoryEventStore, InMemoryTransaction,
)
from escrow_ledger.infrastructure.sql_event_store import SqlTransaction
from escrow_ledger.services.escrow_service import EscrowService

BUYER, SELLER, ARBITER = 1, 2, 3


def _gate_appends(store, monkeypatch):
    """Park every append (after it staged its write) until `release` is set."""
    entered = asyncio.Event()
    release = asyncio.Event()
    tx_class = (
        InMemoryTransaction if isinstance(store, InMemoryEventStore) else SqlTransaction
    )
    original = tx_class.append

    async def append(self, *args, **kwargs):
        event = await original(self, *args, **kwargs)
        entered.set()
        await release.wait()
        return event

    monkeypatch.setattr(tx_class, "append", append)
    return entered, release


async def test_exclusive_terminal_actions_have_one_winner(service):
    created = await service.create_escrow(100, BUYER, SELLER, ARBITER)
    escrow_id = created.metadata.escrow_id
    await service.submit(escrow_id, EscrowStatus.FUNDED, BUYER)
    await service.submit(escrow_id, EscrowStatus.DISPUTED, SELLER)

    results = await asyncio.gather(
        service.submit(escrow_id, EscrowStatus.RELEASED, ARBITER),
        service.submit(escrow_id, EscrowStatus.REFUNDED, ARBITER),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], (InvalidTransitionError, ContentionError))

    events = await service.list_events(escrow_id)
    assert [e.version for e in events] == [1, 2, 3, 4]
    assert (await service.get_state(escrow_id)).is_final is True


async def test_release_racing_dispute_from_funded(service, funded_escrow):
    """RELEASED acquires first: DISPUTED then sees a terminal escrow and fails."""
    results = await asyncio.gather(
        service.submit(funded_escrow, EscrowStatus.RELEASED, ARBITER),
        service.submit(funded_escrow, EscrowStatus.DISPUTED, SELLER),
        return_exceptions=True,
    )
    assert results[0].new_status == EscrowStatus.RELEASED
    assert isinstance(results[1], (InvalidTransitionError, ContentionError))
    assert len(await service.list_events(funded_escrow)) == 3


async def test_duplicate_fund_commands_commit_once(service):
    created = await service.create_escrow(100, BUYER, SELLER, ARBITER)
    escrow_id = created.metadata.escrow_id

    results = await asyncio.gather(
        *(service.submit(escrow_id, EscrowStatus.FUNDED, BUYER) for _ in range(5)),
        return_exceptions=True,
    )

    assert sum(not isinstance(r, Exception) for r in results) == 1
    assert all(
        isinstance(r, (InvalidTransitionError, ContentionError))
        for r in results if isinstance(r, Exception)
    )
    assert [e.version for e in await service.list_events(escrow_id)] == [1, 2]


async def test_loser_evaluated_against_winner_state(service, funded_escrow):
    """DISPUTED acquires first; RELEASED is still legal from DISPUTED and commits after it."""
    disputed, released = await asyncio.gather(
        service.submit(funded_escrow, EscrowStatus.DISPUTED, SELLER),
        service.submit(funded_escrow, EscrowStatus.RELEASED, ARBITER),
    )
    assert (disputed.version, released.version) == (3, 4)
    assert released.previous_status == EscrowStatus.DISPUTED


async def test_lock_timeout_raises_contention(event_store, lock_registry, funded_escrow):
    impatient = EscrowService(event_store, lock_registry, lock_timeout_seconds=0.05)

    async with lock_registry.hold(funded_escrow, timeout_seconds=1.0):
        with pytest.raises(ContentionError) as exc_info:
            await impatient.submit(funded_escrow, EscrowStatus.RELEASED, ARBITER)

    assert exc_info.value.retryable is True
    assert exc_info.value.context.retry_after_ms == 100
    assert len(await impatient.list_events(funded_escrow)) == 2

    # Same command succeeds once the lock is free
    result = await impatient.submit(funded_escrow, EscrowStatus.RELEASED, ARBITER)
    assert result.version == 3


async def test_other_escrow_not_blocked(service, lock_registry, funded_escrow):
    other = await service.create_escrow(50, BUYER, SELLER, ARBITER)

    async with lock_registry.hold(funded_escrow, timeout_seconds=1.0):
        result = await service.submit(
            other.metadata.escrow_id, EscrowStatus.FUNDED, BUYER,
        )

    assert result.version == 2


async def test_cancel_before_lock_has_no_effect(service, lock_registry, funded_escrow):
    async with lock_registry.hold(funded_escrow, timeout_seconds=1.0):
        task = asyncio.create_task(
            service.submit(funded_escrow, EscrowStatus.RELEASED, ARBITER),
        )
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    assert len(await service.list_events(funded_escrow)) == 2
    assert len(lock_registry) == 0


async def test_cancel_inside_critical_section_rolls_back(
    service, event_store, lock_registry, funded_escrow, monkeypatch,
):
    entered, _ = _gate_appends(event_store, monkeypatch)
    task = asyncio.create_task(
        service.submit(funded_escrow, EscrowStatus.RELEASED, ARBITER),
    )
    await asyncio.wait_for(entered.wait(), timeout=1.0)
    assert lock_registry.is_locked(funded_escrow)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert not lock_registry.is_locked(funded_escrow)
    monkeypatch.undo()
    events = await service.list_events(funded_escrow)
    assert [e.version for e in events] == [1, 2]

    result = await service.submit(funded_escrow, EscrowStatus.RELEASED, ARBITER)
    assert result.version == 3


async def test_waiting_submit_sees_committed_event(
    service, event_store, funded_escrow, monkeypatch,
):
    """A submit queued behind an in-flight one reads the log only after that commit."""
    entered, release = _gate_appends(event_store, monkeypatch)
    first = asyncio.create_task(
        service.submit(funded_escrow, EscrowStatus.DISPUTED, BUYER),
    )
    await asyncio.wait_for(entered.wait(), timeout=1.0)
    second = asyncio.create_task(
        service.submit(funded_escrow, EscrowStatus.DISPUTED, SELLER),
    )
    await asyncio.sleep(0.01)
    assert not second.done()

    release.set()
    assert (await first).version == 3
    with pytest.raises(InvalidTransitionError):
        await second
