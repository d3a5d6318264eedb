"""Escrow Events — read-only access to the append-only event log.

Invariants:
    - Per-escrow listing is in version order (oldest first)
    - Cross-escrow listing is newest first and paginated
"""

from fastapi import APIRouter, Depends, Query

from escrow_ledger.api.dependencies import get_escrow_service
from escrow_ledger.core.domain_types import EscrowId
from escrow_ledger.schemas.escrow import EventListResponse, EventResponse
from escrow_ledger.services.escrow_service import EscrowService

router = APIRouter(prefix="/api/v1", tags=["events"])


@router.get("/escrows/{escrow_id}/events", response_model=EventListResponse)
async def list_escrow_events(
    escrow_id: int, service: EscrowService = Depends(get_escrow_service),
):
    """All events of one escrow."""
    events = await service.list_events(EscrowId(escrow_id))
    return EventListResponse(
        data=[EventResponse.from_event(e) for e in events],
        count=len(events),
        escrow_id=escrow_id,
    )


@router.get("/events", response_model=EventListResponse)
async def list_all_events(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: EscrowService = Depends(get_escrow_service),
):
    """Events across all escrows, newest first."""
    events = await service.list_all_events(limit, offset)
    return EventListResponse(
        data=[EventResponse.from_event(e) for e in events],
        count=len(events),
    )
