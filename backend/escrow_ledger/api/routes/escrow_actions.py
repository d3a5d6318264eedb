"""Escrow Actions — submit commands that append one event to an escrow's stream.

Invariants:
    - One request == one service.submit call == at most one new event
    - 403 wrong actor, 400 illegal transition, 404 unknown escrow, 409 retryable contention
"""

from fastapi import APIRouter, Depends, status

from escrow_ledger.api.dependencies import get_escrow_service
from escrow_ledger.core.domain_types import EscrowId, UserId
from escrow_ledger.schemas.escrow import ActionRequest, SubmitResponse
from escrow_ledger.services.escrow_service import EscrowService

router = APIRouter(prefix="/api/v1/escrows", tags=["escrows"])


@router.post(
    "/{escrow_id}/actions", response_model=SubmitResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_action(
    escrow_id: int,
    body: ActionRequest,
    service: EscrowService = Depends(get_escrow_service),
):
    """Request a status change on behalf of an actor."""
    result = await service.submit(
        EscrowId(escrow_id), body.action, UserId(body.actor_id),
    )
    return SubmitResponse.from_result(result)
