"""In-Memory Event Store — process-local EventStore for tests and single-process demos.

Invariants:
    - Writes are staged per transaction and published only on clean exit
    - Any exception or cancellation inside the transaction discards staged writes
    - (escrow_id, version) unique across committed + staged events → ContentionError
    - Every ContentionError carries the store's retry_after_ms hint
    - Event ids and escrow ids are strictly increasing (ids of discarded writes are
      not reused, as with a database sequence)
    - Committed events are never mutated or removed

Design Decisions:
    - Publication happens without an await, so it is atomic on the event loop
    - lock_escrow does no locking of its own: per-escrow exclusion comes from
      EscrowLockRegistry, which is the only mechanism available in one process anyway
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from itertools import count
from typing import AsyncIterator, Iterable

from escrow_ledger.core.domain_types import (
    EscrowEvent, EscrowId, EscrowMetadata, EventId, EventType, ProposedPayload,
    Roles, UserId,
)
from escrow_ledger.core.errors import ContentionError, ErrorContext


class InMemoryEventStore:
    """EventStore backed by dicts. Not durable."""

    def __init__(self, user_ids: Iterable[int] = (), retry_after_ms: int = 250):
        self._users: set[UserId] = {UserId(u) for u in user_ids}
        self._metadata: dict[EscrowId, EscrowMetadata] = {}
        self._events: dict[EscrowId, list[EscrowEvent]] = {}
        self._escrow_ids = count(1)
        self._event_ids = count(1)
        self._retry_after_ms = retry_after_ms

    def add_user(self, user_id: int) -> None:
        self._users.add(UserId(user_id))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["InMemoryTransaction"]:
        tx = InMemoryTransaction(self)
        try:
            yield tx
        except BaseException:
            tx.discard()
            raise
        tx.publish()

    async def health_check(self) -> bool:
        return True

    # ─── used by InMemoryTransaction ────────────────────────────

    def _next_escrow_id(self) -> EscrowId:
        return EscrowId(next(self._escrow_ids))

    def _next_event_id(self) -> EventId:
        return EventId(next(self._event_ids))


class InMemoryTransaction:
    """Unit of work over InMemoryEventStore."""

    def __init__(self, store: InMemoryEventStore):
        self._store = store
        self._staged_metadata: dict[EscrowId, EscrowMetadata] = {}
        self._staged_events: list[EscrowEvent] = []
        self._closed = False

    async def lock_escrow(self, escrow_id: EscrowId) -> EscrowMetadata | None:
        return await self.get_metadata(escrow_id)

    async def get_metadata(self, escrow_id: EscrowId) -> EscrowMetadata | None:
        self._check_open()
        return (
            self._staged_metadata.get(escrow_id)
            or self._store._metadata.get(escrow_id)
        )

    async def load_events(self, escrow_id: EscrowId) -> list[EscrowEvent]:
        self._check_open()
        events = list(self._store._events.get(escrow_id, []))
        events += [e for e in self._staged_events if e.escrow_id == escrow_id]
        return sorted(events, key=lambda e: e.version)

    async def append(
        self,
        escrow_id: EscrowId,
        event_type: EventType,
        actor_id: UserId,
        payload: ProposedPayload | None = None,
        expected_version: int | None = None,
    ) -> EscrowEvent:
        events = await self.load_events(escrow_id)
        current = events[-1].version if events else 0
        if expected_version is not None and expected_version != current:
            raise ContentionError(
                f"Escrow {escrow_id} moved to version {current} "
                f"(expected {expected_version})",
                retry_after_ms=self._store._retry_after_ms,
                context=ErrorContext(escrow_id=escrow_id, actor_id=actor_id),
            )
        event = EscrowEvent(
            id=self._store._next_event_id(),
            escrow_id=escrow_id,
            event_type=event_type,
            actor_id=actor_id,
            version=current + 1,
            created_at=datetime.now(timezone.utc),
            payload=payload if event_type == EventType.PROPOSED else None,
        )
        self._staged_events.append(event)
        return event

    async def insert_metadata(self, amount: Decimal, roles: Roles) -> EscrowMetadata:
        self._check_open()
        metadata = EscrowMetadata(
            escrow_id=self._store._next_escrow_id(),
            amount=amount,
            buyer_id=roles.buyer_id,
            seller_id=roles.seller_id,
            arbiter_id=roles.arbiter_id,
            created_at=datetime.now(timezone.utc),
        )
        self._staged_metadata[metadata.escrow_id] = metadata
        return metadata

    async def find_missing_users(self, user_ids: Iterable[UserId]) -> set[UserId]:
        self._check_open()
        return {u for u in user_ids if u not in self._store._users}

    async def list_all_events(self, limit: int, offset: int) -> list[EscrowEvent]:
        self._check_open()
        events = [e for stream in self._store._events.values() for e in stream]
        events.sort(key=lambda e: e.id, reverse=True)
        return events[offset:offset + limit]

    # ─── lifecycle ──────────────────────────────────────────────

    def publish(self) -> None:
        """Apply staged writes. Raises ContentionError if a version was taken meanwhile."""
        self._check_open()
        for event in self._staged_events:
            taken = {e.version for e in self._store._events.get(event.escrow_id, [])}
            if event.version in taken:
                self.discard()
                raise ContentionError(
                    f"Version {event.version} of escrow {event.escrow_id} already exists",
                    retry_after_ms=self._store._retry_after_ms,
                    context=ErrorContext(escrow_id=event.escrow_id),
                )
        self._store._metadata.update(self._staged_metadata)
        for escrow_id in self._staged_metadata:
            self._store._events.setdefault(escrow_id, [])
        for event in self._staged_events:
            self._store._events.setdefault(event.escrow_id, []).append(event)
        self._closed = True

    def discard(self) -> None:
        self._staged_metadata.clear()
        self._staged_events.clear()
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Transaction already closed")
