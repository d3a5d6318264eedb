"""Escrow Lifecycle — create escrows and read their terms and derived state.

Invariants:
    - Creation writes metadata + EscrowProposed v1 atomically (service guarantees)
    - State is folded from the event log on every request, never cached
    - Routes never contain business logic; EscrowLedgerError propagates to the global handler
"""

from fastapi import APIRouter, Depends, status

from escrow_ledger.api.dependencies import get_escrow_service
from escrow_ledger.core.domain_types import EscrowId, UserId
from escrow_ledger.schemas.escrow import (
    CreateEscrowResponse, EscrowCreate, MetadataResponse, StateResponse,
)
from escrow_ledger.services.escrow_service import EscrowService

router = APIRouter(prefix="/api/v1/escrows", tags=["escrows"])


@router.post(
    "", response_model=CreateEscrowResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_escrow(
    body: EscrowCreate, service: EscrowService = Depends(get_escrow_service),
):
    """Create an escrow and its founding EscrowProposed event."""
    created = await service.create_escrow(
        body.amount,
        UserId(body.buyer_id),
        UserId(body.seller_id),
        UserId(body.arbiter_id),
    )
    return CreateEscrowResponse.from_created(created)


@router.get("/{escrow_id}", response_model=MetadataResponse)
async def get_escrow(
    escrow_id: int, service: EscrowService = Depends(get_escrow_service),
):
    """Get the immutable terms of an escrow."""
    metadata = await service.get_metadata(EscrowId(escrow_id))
    return MetadataResponse.from_metadata(metadata)


@router.get("/{escrow_id}/state", response_model=StateResponse)
async def get_escrow_state(
    escrow_id: int, service: EscrowService = Depends(get_escrow_service),
):
    """Get the current state, replayed from the event log."""
    state = await service.get_state(EscrowId(escrow_id))
    return StateResponse.from_state(escrow_id, state)
