"""Authorization — which participants may request which action.

Invariants:
    - can_perform is PURE: depends only on action, actor and the fixed roles
    - Never consults current status (that is core/transitions.py's job)
    - PROPOSED is never requestable: it is recorded only by escrow creation
    - Unknown actors are denied for every action

Design Decisions:
    - Roles → actors resolved per call from Roles: participant ids are fixed at
      creation, so there is nothing to cache
    - DISPUTED: buyer or seller, never the arbiter (the arbiter settles disputes,
      it does not open them)
"""

from escrow_ledger.core.domain_types import EscrowStatus, Role, Roles, UserId


PERMITTED_ROLES: dict[EscrowStatus, frozenset[Role]] = {
    EscrowStatus.PROPOSED: frozenset(),
    EscrowStatus.FUNDED: frozenset({Role.BUYER}),
    EscrowStatus.DISPUTED: frozenset({Role.BUYER, Role.SELLER}),
    EscrowStatus.RELEASED: frozenset({Role.ARBITER}),
    EscrowStatus.REFUNDED: frozenset({Role.ARBITER}),
}


def permitted_actors(action: EscrowStatus, roles: Roles) -> frozenset[UserId]:
    """User ids allowed to request `action` on an escrow with these roles."""
    return frozenset(
        roles.holder_of(role) for role in PERMITTED_ROLES.get(action, frozenset())
    )


def can_perform(action: EscrowStatus, actor_id: UserId, roles: Roles) -> bool:
    return actor_id in permitted_actors(action, roles)
