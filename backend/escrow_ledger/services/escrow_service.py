"""Escrow Service — the concurrency controller around the pure escrow core.

Invariants:
    - submit runs lock → load metadata → fold → authorize → validate → append → commit
      as ONE serialized unit per escrow; no step runs outside the lock
    - Authorization is checked before transition validity, each failing with its own error
    - Any failure between lock and commit leaves no event behind (transaction rollback)
    - Cancellation before the lock has no effect; after it, the unit of work is rolled
      back and the lock released (context managers unwind on CancelledError)
    - State is never cached: every read folds the committed log afresh
    - Different escrows never contend: locks are keyed by escrow id

Design Decisions:
    - Impureim sandwich: IO (store) → pure decisions (fold, can_perform,
      is_valid_transition) → IO (append) — the decisions stay unit-testable
    - Store injected, never global: the same service runs over SQL or memory
    - In-process lock taken before the DB transaction opens: waiters do not hold
      pooled connections while they queue
"""

import logging
from decimal import Decimal, InvalidOperation

from escrow_ledger.core.authorization import can_perform
from escrow_ledger.core.domain_types import (
    CreatedEscrow, EscrowEvent, EscrowId, EscrowMetadata, EscrowState, EscrowStatus,
    EventType, ProposedPayload, Roles, SubmitResult, UserId,
)
from escrow_ledger.core.errors import (
    ErrorContext, InvalidTransitionError, PermissionDeniedError,
    ResourceNotFoundError, ValidationError,
)
from escrow_ledger.core.escrow_terms import check_terms
from escrow_ledger.core.replay import fold
from escrow_ledger.core.repository_protocols import EscrowTransaction, EventStore
from escrow_ledger.core.transitions import event_type_for, is_valid_transition
from escrow_ledger.infrastructure.escrow_locks import EscrowLockRegistry

logger = logging.getLogger(__name__)


class EscrowService:
    """Creates escrows and serializes commands against their event streams."""

    def __init__(
        self,
        store: EventStore,
        locks: EscrowLockRegistry | None = None,
        lock_timeout_seconds: float = 5.0,
    ):
        self._store = store
        self._locks = locks if locks is not None else EscrowLockRegistry()
        self._lock_timeout_seconds = lock_timeout_seconds

    @property
    def store(self) -> EventStore:
        return self._store

    @property
    def locks(self) -> EscrowLockRegistry:
        return self._locks

    async def create_escrow(
        self,
        amount: Decimal,
        buyer_id: UserId,
        seller_id: UserId,
        arbiter_id: UserId,
    ) -> CreatedEscrow:
        """Persist escrow terms and its founding EscrowProposed event atomically."""
        try:
            amount = Decimal(str(amount))
        except InvalidOperation:
            raise ValidationError(f"Amount must be a number, got {amount!r}", "amount")
        roles = Roles(UserId(buyer_id), UserId(seller_id), UserId(arbiter_id))
        error = check_terms(amount, roles)
        if error:
            raise ValidationError(error["message"], error["field"])

        async with self._store.transaction() as tx:
            missing = await tx.find_missing_users(
                [roles.buyer_id, roles.seller_id, roles.arbiter_id],
            )
            if missing:
                raise ValidationError(
                    f"Unknown user(s): {', '.join(str(u) for u in sorted(missing))}",
                    "roles",
                )
            metadata = await tx.insert_metadata(amount, roles)
            initial_event = await tx.append(
                metadata.escrow_id,
                EventType.PROPOSED,
                roles.buyer_id,
                payload=ProposedPayload(
                    buyer_id=roles.buyer_id,
                    seller_id=roles.seller_id,
                    arbiter_id=roles.arbiter_id,
                    amount=amount,
                ),
                expected_version=0,
            )

        logger.info(
            "Escrow created",
            extra={
                "escrow_id": metadata.escrow_id,
                "actor_id": roles.buyer_id,
                "version": initial_event.version,
            },
        )
        return CreatedEscrow(metadata=metadata, initial_event=initial_event)

    async def submit(
        self, escrow_id: EscrowId, action: EscrowStatus, actor_id: UserId,
    ) -> SubmitResult:
        """Apply `action` on behalf of `actor_id`, or raise without writing anything."""
        action = EscrowStatus(action)
        ctx = ErrorContext(escrow_id=escrow_id, actor_id=actor_id, action=action.value)

        async with self._locks.hold(escrow_id, self._lock_timeout_seconds):
            async with self._store.transaction() as tx:
                metadata = await tx.lock_escrow(escrow_id)
                if metadata is None:
                    raise ResourceNotFoundError("Escrow", escrow_id, ctx)

                state = fold(await tx.load_events(escrow_id))

                if not can_perform(action, actor_id, metadata.roles):
                    self._log_rejection("permission denied", ctx, state)
                    raise PermissionDeniedError(action.value, actor_id, ctx)

                if not is_valid_transition(state.status, action):
                    self._log_rejection("invalid transition", ctx, state)
                    raise InvalidTransitionError(
                        state.status.value, action.value, ctx,
                    )

                event = await tx.append(
                    escrow_id,
                    event_type_for(action),
                    actor_id,
                    expected_version=state.version,
                )

        logger.info(
            f"Escrow {escrow_id}: {state.status.value} -> {action.value}",
            extra={
                "escrow_id": escrow_id,
                "actor_id": actor_id,
                "action": action.value,
                "version": event.version,
                "previous_status": state.status.value,
                "new_status": action.value,
            },
        )
        return SubmitResult(
            previous_status=state.status,
            new_status=action,
            event=event,
            version=event.version,
        )

    async def get_state(self, escrow_id: EscrowId) -> EscrowState:
        async with self._store.transaction() as tx:
            await self._require_metadata(tx, escrow_id)
            return fold(await tx.load_events(escrow_id))

    async def list_events(self, escrow_id: EscrowId) -> list[EscrowEvent]:
        async with self._store.transaction() as tx:
            await self._require_metadata(tx, escrow_id)
            return await tx.load_events(escrow_id)

    async def get_metadata(self, escrow_id: EscrowId) -> EscrowMetadata:
        async with self._store.transaction() as tx:
            return await self._require_metadata(tx, escrow_id)

    async def list_all_events(
        self, limit: int = 100, offset: int = 0,
    ) -> list[EscrowEvent]:
        async with self._store.transaction() as tx:
            return await tx.list_all_events(limit, offset)

    @staticmethod
    async def _require_metadata(
        tx: EscrowTransaction, escrow_id: EscrowId,
    ) -> EscrowMetadata:
        metadata = await tx.get_metadata(escrow_id)
        if metadata is None:
            raise ResourceNotFoundError(
                "Escrow", escrow_id, ErrorContext(escrow_id=escrow_id),
            )
        return metadata

    @staticmethod
    def _log_rejection(reason: str, ctx: ErrorContext, state: EscrowState) -> None:
        logger.warning(
            f"Command rejected: {reason}",
            extra={
                "escrow_id": ctx.escrow_id,
                "actor_id": ctx.actor_id,
                "action": ctx.action,
                "version": state.version,
                "previous_status": state.status.value,
            },
        )
