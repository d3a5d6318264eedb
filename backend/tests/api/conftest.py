"""API test fixtures — FastAPI app over an in-memory escrow service.

Invariants:
    - get_escrow_service overridden per test: no lifespan, no database
    - Users 1..5 exist; 1/2/3 play buyer/seller/arbiter
    - Lock timeout is short so contention tests finish fast

Design Decisions:
    - httpx.AsyncClient + ASGITransport: requests run on the test's event loop,
      so tests can hold an escrow lock while a request is in flight
"""

import pytest
from httpx import ASGITransport, AsyncClient

from escrow_ledger.api.dependencies import get_escrow_service
from escrow_ledger.infrastructure.escrow_locks import EscrowLockRegistry
from escrow_ledger.infrastructure.memory_event_store import InMemoryEventStore
from escrow_ledger.main import app
from escrow_ledger.services.escrow_service import EscrowService


@pytest.fixture
def api_locks():
    return EscrowLockRegistry(retry_after_ms=1500)


@pytest.fixture
def api_service(api_locks):
    return EscrowService(
        InMemoryEventStore(user_ids=(1, 2, 3, 4, 5)),
        api_locks,
        lock_timeout_seconds=0.05,
    )


@pytest.fixture
async def client(api_service):
    """FastAPI test client with the escrow service overridden."""
    app.dependency_overrides[get_escrow_service] = lambda: api_service
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def escrow_id(client):
    """An escrow of 100.00 between users 1/2/3, still PROPOSED."""
    res = await client.post("/api/v1/escrows", json={
        "amount": "100.00", "buyer_id": 1, "seller_id": 2, "arbiter_id": 3,
    })
    assert res.status_code == 201
    return res.json()["metadata"]["escrow_id"]
