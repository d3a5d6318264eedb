"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - The event store is the only shared mutable resource; it changes only through
      EscrowTransaction.append and EscrowTransaction.insert_metadata
    - Every read and write happens inside EventStore.transaction(): the context
      commits on clean exit and rolls back on ANY exception, cancellation included
    - append claims version = current max + 1 and raises ContentionError if that
      version is already taken (unique (escrow_id, version))

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Unit-of-work object over free functions: lock, read, validate and write must
      share one transaction, so they share one object
    - Async in Protocol: implementations do IO, but the pure functions that
      decide (fold, can_perform, is_valid_transition) are never async
"""

from decimal import Decimal
from typing import AsyncContextManager, Iterable, Protocol

from escrow_ledger.core.domain_types import (
    EscrowEvent, EscrowId, EscrowMetadata, EventType, ProposedPayload, Roles, UserId,
)


class EscrowTransaction(Protocol):
    """One atomic unit of work against the event store."""

    async def lock_escrow(self, escrow_id: EscrowId) -> EscrowMetadata | None:
        """Take exclusive access to the escrow's stream; None if it does not exist."""
        ...

    async def get_metadata(self, escrow_id: EscrowId) -> EscrowMetadata | None: ...

    async def load_events(self, escrow_id: EscrowId) -> list[EscrowEvent]:
        """All events of the escrow in version order."""
        ...

    async def append(
        self,
        escrow_id: EscrowId,
        event_type: EventType,
        actor_id: UserId,
        payload: ProposedPayload | None = None,
        expected_version: int | None = None,
    ) -> EscrowEvent: ...

    async def insert_metadata(self, amount: Decimal, roles: Roles) -> EscrowMetadata: ...

    async def find_missing_users(self, user_ids: Iterable[UserId]) -> set[UserId]: ...

    async def list_all_events(
        self, limit: int, offset: int,
    ) -> list[EscrowEvent]:
        """Events across all escrows, newest first."""
        ...


class EventStore(Protocol):
    """Contract for escrow event persistence — implemented by shell."""

    def transaction(self) -> AsyncContextManager[EscrowTransaction]: ...

    async def health_check(self) -> bool: ...
