"""Root conftest — shared test configuration and event store fixtures.

Invariants:
    - Tests never touch a real PostgreSQL: SQL store runs on in-memory SQLite
    - Every test gets a fresh store (memory) or a fresh database (sql)
    - Users 1..5 exist in every store; 1/2/3 play buyer/seller/arbiter

Design Decisions:
    - StaticPool for :memory: SQLite: every session sees the same database
    - event_store is parametrized over both adapters: the controller must behave
      identically whichever store it is given
"""

import os

# Settings are read at import time by escrow_ledger.main
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("EVENT_STORE_BACKEND", "memory")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

import escrow_ledger.models  # noqa: F401
from escrow_ledger.db.base import Base
from escrow_ledger.infrastructure.database import DatabaseSessionManager
from escrow_ledger.infrastructure.escrow_locks import EscrowLockRegistry
from escrow_ledger.infrastructure.memory_event_store import InMemoryEventStore
from escrow_ledger.infrastructure.sql_event_store import SqlEventStore
from escrow_ledger.models.escrow_user import EscrowUser
from escrow_ledger.services.escrow_service import EscrowService

USER_IDS = (1, 2, 3, 4, 5)
BUYER, SELLER, ARBITER, OUTSIDER = 1, 2, 3, 4


async def _create_sqlite_manager() -> DatabaseSessionManager:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    manager = DatabaseSessionManager.from_engine(engine)
    async with manager.session() as session:
        session.add_all([EscrowUser(user_id=u) for u in USER_IDS])
        await session.commit()
    return manager


@pytest.fixture
async def test_db_manager():
    manager = await _create_sqlite_manager()
    yield manager
    await manager.dispose()


@pytest.fixture
def sql_store(test_db_manager):
    return SqlEventStore(test_db_manager)


@pytest.fixture
def memory_store():
    return InMemoryEventStore(user_ids=USER_IDS)


@pytest.fixture(params=["memory", "sql"])
async def event_store(request):
    """Each test using this fixture runs once per store adapter."""
    if request.param == "memory":
        yield InMemoryEventStore(user_ids=USER_IDS)
        return
    manager = await _create_sqlite_manager()
    yield SqlEventStore(manager)
    await manager.dispose()


@pytest.fixture
def lock_registry():
    return EscrowLockRegistry(retry_after_ms=100)


@pytest.fixture
def service(event_store, lock_registry):
    return EscrowService(event_store, lock_registry, lock_timeout_seconds=1.0)


@pytest.fixture
async def funded_escrow(service):
    """Escrow of 100 between users 1/2/3, already FUNDED (version 2)."""
    created = await service.create_escrow(100, BUYER, SELLER, ARBITER)
    await service.submit(created.metadata.escrow_id, "FUNDED", BUYER)
    return created.metadata.escrow_id
