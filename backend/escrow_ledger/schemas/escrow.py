"""Escrow Schemas — Pydantic models for the HTTP boundary.

Invariants:
    - Request models check SHAPE only: enum action, non-negative ids, positive amount
    - Semantic rules (distinct parties, known users, transitions) stay in core/services
    - Response models are built from core dataclasses via from_* constructors

Design Decisions:
    - ActionRequest accepts `user_id` as an alias of `actor_id`: older clients send it
    - Decimal for amount end to end: money never passes through float
"""

from datetime import datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, Field

from escrow_ledger.core.domain_types import (
    CreatedEscrow, EscrowEvent, EscrowMetadata, EscrowState, EscrowStatus,
    EventType, SubmitResult,
)


class EscrowCreate(BaseModel):
    """Escrow creation — terms of the agreement."""
    amount: Decimal = Field(gt=0, max_digits=18, decimal_places=2)
    buyer_id: int = Field(ge=0)
    seller_id: int = Field(ge=0)
    arbiter_id: int = Field(ge=0)


class ActionRequest(BaseModel):
    """A command against an existing escrow."""
    action: EscrowStatus
    actor_id: int = Field(
        ge=0, validation_alias=AliasChoices("actor_id", "user_id"),
    )


class MetadataResponse(BaseModel):
    escrow_id: int
    amount: Decimal
    buyer_id: int
    seller_id: int
    arbiter_id: int
    created_at: datetime

    @classmethod
    def from_metadata(cls, metadata: EscrowMetadata) -> "MetadataResponse":
        return cls(
            escrow_id=metadata.escrow_id,
            amount=metadata.amount,
            buyer_id=metadata.buyer_id,
            seller_id=metadata.seller_id,
            arbiter_id=metadata.arbiter_id,
            created_at=metadata.created_at,
        )


class EventResponse(BaseModel):
    id: int
    escrow_id: int
    event_type: str
    actor_id: int
    payload: dict | None = None
    version: int
    created_at: datetime

    @classmethod
    def from_event(cls, event: EscrowEvent) -> "EventResponse":
        kind = event.event_type
        return cls(
            id=event.id,
            escrow_id=event.escrow_id,
            event_type=kind.value if isinstance(kind, EventType) else str(kind),
            actor_id=event.actor_id,
            payload=event.payload.to_json() if event.payload else None,
            version=event.version,
            created_at=event.created_at,
        )


class StateResponse(BaseModel):
    escrow_id: int
    status: EscrowStatus
    buyer_id: int | None
    seller_id: int | None
    amount: Decimal | None
    version: int
    is_final: bool

    @classmethod
    def from_state(cls, escrow_id: int, state: EscrowState) -> "StateResponse":
        return cls(
            escrow_id=escrow_id,
            status=state.status,
            buyer_id=state.buyer_id,
            seller_id=state.seller_id,
            amount=state.amount,
            version=state.version,
            is_final=state.is_final,
        )


class CreateEscrowResponse(BaseModel):
    metadata: MetadataResponse
    initial_event: EventResponse

    @classmethod
    def from_created(cls, created: CreatedEscrow) -> "CreateEscrowResponse":
        return cls(
            metadata=MetadataResponse.from_metadata(created.metadata),
            initial_event=EventResponse.from_event(created.initial_event),
        )


class SubmitResponse(BaseModel):
    previous_status: EscrowStatus
    new_status: EscrowStatus
    event: EventResponse
    version: int

    @classmethod
    def from_result(cls, result: SubmitResult) -> "SubmitResponse":
        return cls(
            previous_status=result.previous_status,
            new_status=result.new_status,
            event=EventResponse.from_event(result.event),
            version=result.version,
        )


class EventListResponse(BaseModel):
    data: list[EventResponse]
    count: int
    escrow_id: int | None = None
