"""Domain Types — identities, enums and immutable records of the escrow ledger.

Invariants:
    - EscrowId and UserId wrap ints — never use a bare int for an identity in domain logic
    - EscrowMetadata and EscrowEvent are frozen: written once, never mutated
    - EscrowState is derived by replay (core/replay.py) and never persisted
    - Only EscrowProposed carries a payload (ProposedPayload); every other event has None

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and to DB string columns without custom encoders
    - EscrowEvent.event_type is `EventType | str`: rows written by a newer release may
      carry kinds this code does not know yet, and replay must tolerate them
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

EscrowId = NewType("EscrowId", int)
UserId = NewType("UserId", int)
EventId = NewType("EventId", int)


# ─── Enums ───────────────────────────────────────────────────────

class EscrowStatus(str, Enum):
    """Escrow lifecycle states — also the vocabulary of requested actions."""
    PROPOSED = "PROPOSED"
    FUNDED = "FUNDED"
    DISPUTED = "DISPUTED"
    RELEASED = "RELEASED"
    REFUNDED = "REFUNDED"


class EventType(str, Enum):
    """Kinds of facts recorded in the event log."""
    PROPOSED = "EscrowProposed"
    FUNDED = "EscrowFunded"
    DISPUTED = "EscrowDisputed"
    RELEASED = "EscrowReleased"
    REFUNDED = "EscrowRefunded"


class Role(str, Enum):
    """Fixed participant roles of an escrow."""
    BUYER = "buyer"
    SELLER = "seller"
    ARBITER = "arbiter"


TERMINAL_STATUSES: frozenset[EscrowStatus] = frozenset({
    EscrowStatus.RELEASED, EscrowStatus.REFUNDED,
})


def parse_event_type(raw: str) -> EventType | str:
    """Known kinds become EventType; unknown kinds pass through as raw strings."""
    try:
        return EventType(raw)
    except ValueError:
        return raw


# ─── Records ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class Roles:
    """The three participants of an escrow."""
    buyer_id: UserId
    seller_id: UserId
    arbiter_id: UserId

    def holder_of(self, role: Role) -> UserId:
        return {
            Role.BUYER: self.buyer_id,
            Role.SELLER: self.seller_id,
            Role.ARBITER: self.arbiter_id,
        }[role]


@dataclass(frozen=True)
class ProposedPayload:
    """Payload of EscrowProposed. Fields may be None when replaying partial rows."""
    buyer_id: UserId | None = None
    seller_id: UserId | None = None
    arbiter_id: UserId | None = None
    amount: Decimal | None = None

    def to_json(self) -> dict:
        return {
            "buyer_id": self.buyer_id,
            "seller_id": self.seller_id,
            "arbiter_id": self.arbiter_id,
            "amount": str(self.amount) if self.amount is not None else None,
        }

    @classmethod
    def from_json(cls, data: dict | None) -> "ProposedPayload":
        data = data or {}
        return cls(
            buyer_id=_optional_user(data.get("buyer_id")),
            seller_id=_optional_user(data.get("seller_id")),
            arbiter_id=_optional_user(data.get("arbiter_id")),
            amount=_optional_decimal(data.get("amount")),
        )


def payload_from_json(
    event_type: EventType | str, data: dict | None,
) -> ProposedPayload | None:
    """Rebuild the tagged payload for a stored event."""
    if event_type == EventType.PROPOSED:
        return ProposedPayload.from_json(data)
    return None


def payload_to_json(payload: ProposedPayload | None) -> dict | None:
    return payload.to_json() if payload is not None else None


def _optional_user(value: object) -> UserId | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return UserId(int(value))
    except (TypeError, ValueError):
        return None


def _optional_decimal(value: object) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


@dataclass(frozen=True)
class EscrowMetadata:
    """Immutable terms of an escrow, fixed at creation."""
    escrow_id: EscrowId
    amount: Decimal
    buyer_id: UserId
    seller_id: UserId
    arbiter_id: UserId
    created_at: datetime

    @property
    def roles(self) -> Roles:
        return Roles(self.buyer_id, self.seller_id, self.arbiter_id)


@dataclass(frozen=True)
class EscrowEvent:
    """One immutable fact in an escrow's history."""
    id: EventId
    escrow_id: EscrowId
    event_type: EventType | str
    actor_id: UserId
    version: int
    created_at: datetime
    payload: ProposedPayload | None = None


@dataclass(frozen=True)
class EscrowState:
    """Current state of an escrow — always derived by folding its events."""
    status: EscrowStatus = EscrowStatus.PROPOSED
    buyer_id: UserId | None = None
    seller_id: UserId | None = None
    amount: Decimal | None = None
    version: int = 0
    is_final: bool = False


@dataclass(frozen=True)
class CreatedEscrow:
    """Result of creating an escrow: its terms and founding event."""
    metadata: EscrowMetadata
    initial_event: EscrowEvent


@dataclass(frozen=True)
class SubmitResult:
    """Result of a committed command."""
    previous_status: EscrowStatus
    new_status: EscrowStatus
    event: EscrowEvent
    version: int
