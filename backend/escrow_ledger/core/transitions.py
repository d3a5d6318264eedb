"""Transition Validator — the escrow finite-state machine.

Invariants:
    - PROPOSED is the initial state; RELEASED and REFUNDED are terminal (no outgoing edges)
    - is_valid_transition is a static lookup: no actor, no clock, no mutable state
    - Every requested action maps to exactly one event kind (event_type_for)

Design Decisions:
    - Table as frozensets keyed by status: the whole state machine reads at a glance
"""

from escrow_ledger.core.domain_types import EscrowStatus, EventType


TRANSITIONS: dict[EscrowStatus, frozenset[EscrowStatus]] = {
    EscrowStatus.PROPOSED: frozenset({EscrowStatus.FUNDED}),
    EscrowStatus.FUNDED: frozenset({EscrowStatus.DISPUTED, EscrowStatus.RELEASED}),
    EscrowStatus.DISPUTED: frozenset({EscrowStatus.RELEASED, EscrowStatus.REFUNDED}),
    EscrowStatus.RELEASED: frozenset(),
    EscrowStatus.REFUNDED: frozenset(),
}

_EVENT_FOR_ACTION: dict[EscrowStatus, EventType] = {
    EscrowStatus.PROPOSED: EventType.PROPOSED,
    EscrowStatus.FUNDED: EventType.FUNDED,
    EscrowStatus.DISPUTED: EventType.DISPUTED,
    EscrowStatus.RELEASED: EventType.RELEASED,
    EscrowStatus.REFUNDED: EventType.REFUNDED,
}


def is_valid_transition(
    current_status: EscrowStatus, requested_action: EscrowStatus,
) -> bool:
    """True iff requested_action is an outgoing edge of current_status."""
    return requested_action in TRANSITIONS.get(current_status, frozenset())


def allowed_actions(current_status: EscrowStatus) -> frozenset[EscrowStatus]:
    return TRANSITIONS.get(current_status, frozenset())


def event_type_for(action: EscrowStatus) -> EventType:
    """Event kind recorded when an action commits."""
    return _EVENT_FOR_ACTION[action]
