"""Health & Readiness Probes — liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if the event store is unreachable (readiness)

Design Decisions:
    - Separate liveness/readiness: liveness restarts, readiness removes from load balancer
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from escrow_ledger.api.dependencies import get_escrow_service
from escrow_ledger.services.escrow_service import EscrowService

router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "escrow-ledger-api",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check(service: EscrowService = Depends(get_escrow_service)):
    """Readiness probe — includes event store connectivity."""
    store_ok = await service.store.health_check()
    if not store_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "event_store_unavailable",
            },
        )
    return {"status": "ready", "checks": {"event_store": "healthy"}}
