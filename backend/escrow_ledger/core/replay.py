"""State Replay — folds an ordered event sequence into the current EscrowState.

Invariants:
    - fold is PURE: no IO, no clock, no hidden state; same input → same output
    - fold([]) == EscrowState() (PROPOSED, no parties, no amount, version 0, not final)
    - Unknown event kinds leave status and parties untouched
    - state.version is the version of the last event folded, known kind or not
    - is_final is True iff status is RELEASED or REFUNDED
    - fold never raises: every input sequence has a state

Design Decisions:
    - Dispatch table over if/elif chain: one rule per event kind, adding a kind
      is one entry (ADR: single source of truth for replay rules)
    - Version tracks unknown kinds too: the next append must still claim max + 1
"""

from dataclasses import replace
from typing import Callable, Iterable

from escrow_ledger.core.domain_types import (
    EscrowEvent, EscrowState, EscrowStatus, EventType, ProposedPayload,
    TERMINAL_STATUSES,
)


def _apply_proposed(state: EscrowState, event: EscrowEvent) -> EscrowState:
    payload = event.payload if isinstance(event.payload, ProposedPayload) else ProposedPayload()
    return replace(
        state,
        status=EscrowStatus.PROPOSED,
        buyer_id=payload.buyer_id,
        seller_id=payload.seller_id,
        amount=payload.amount,
    )


def _set_status(status: EscrowStatus) -> Callable[[EscrowState, EscrowEvent], EscrowState]:
    def apply(state: EscrowState, event: EscrowEvent) -> EscrowState:
        return replace(state, status=status)
    return apply


_RULES: dict[str, Callable[[EscrowState, EscrowEvent], EscrowState]] = {
    EventType.PROPOSED.value: _apply_proposed,
    EventType.FUNDED.value: _set_status(EscrowStatus.FUNDED),
    EventType.DISPUTED.value: _set_status(EscrowStatus.DISPUTED),
    EventType.RELEASED.value: _set_status(EscrowStatus.RELEASED),
    EventType.REFUNDED.value: _set_status(EscrowStatus.REFUNDED),
}


def _kind(event: EscrowEvent) -> str:
    kind = event.event_type
    return kind.value if isinstance(kind, EventType) else str(kind)


def apply_event(state: EscrowState, event: EscrowEvent) -> EscrowState:
    """Apply a single event. Unknown kinds only advance the version."""
    rule = _RULES.get(_kind(event))
    if rule is not None:
        state = rule(state, event)
    return replace(
        state,
        version=event.version,
        is_final=state.status in TERMINAL_STATUSES,
    )


def fold(events: Iterable[EscrowEvent]) -> EscrowState:
    """Replay events (already in version order) into the current state."""
    state = EscrowState()
    for event in events:
        state = apply_event(state, event)
    return state
