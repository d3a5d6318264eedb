"""API Dependencies — event store selection and service wiring."""

from decimal import Decimal

import pytest

import escrow_ledger.api.dependencies as deps
import escrow_ledger.infrastructure.database as db_module
from escrow_ledger.config import Settings
from escrow_ledger.core.domain_types import EscrowStatus
from escrow_ledger.core.errors import ContentionError, ValidationError
from escrow_ledger.infrastructure.memory_event_store import InMemoryEventStore
from escrow_ledger.infrastructure.sql_event_store import SqlEventStore


def test_memory_backend_builds_in_memory_store():
    store = deps.build_event_store(Settings(event_store_backend="memory"))
    assert isinstance(store, InMemoryEventStore)


async def test_sql_backend_initializes_db_manager(monkeypatch):
    monkeypatch.setattr(db_module, "db_manager", None)
    store = deps.build_event_store(Settings(
        event_store_backend="sql", database_url="sqlite+aiosqlite:///:memory:",
    ))
    assert isinstance(store, SqlEventStore)
    assert db_module.db_manager is not None
    await db_module.db_manager.dispose()


def test_get_escrow_service_requires_startup(monkeypatch):
    monkeypatch.setattr(deps, "escrow_service", None)
    with pytest.raises(RuntimeError):
        deps.get_escrow_service()


def test_init_escrow_service_uses_settings(monkeypatch):
    monkeypatch.setattr(deps, "escrow_service", None)
    service = deps.init_escrow_service(Settings(
        event_store_backend="memory", lock_timeout_ms=750,
    ))
    assert deps.get_escrow_service() is service
    assert isinstance(service.store, InMemoryEventStore)


async def test_memory_backend_creates_escrows_for_configured_users(monkeypatch):
    monkeypatch.setattr(deps, "escrow_service", None)
    service = deps.init_escrow_service(Settings(
        event_store_backend="memory", memory_user_ids=[1, 2, 3],
    ))
    created = await service.create_escrow(Decimal("100"), 1, 2, 3)
    assert created.initial_event.version == 1

    with pytest.raises(ValidationError):
        await service.create_escrow(Decimal("100"), 1, 2, 9)


async def test_configured_retry_hint_reaches_contention_errors(monkeypatch):
    monkeypatch.setattr(deps, "escrow_service", None)
    service = deps.init_escrow_service(Settings(
        event_store_backend="memory", memory_user_ids=[1, 2, 3],
        contention_retry_after_ms=1234, lock_timeout_ms=50,
    ))
    created = await service.create_escrow(Decimal("100"), 1, 2, 3)
    escrow_id = created.metadata.escrow_id

    async with service.locks.hold(escrow_id, timeout_seconds=1.0):
        with pytest.raises(ContentionError) as exc_info:
            await service.submit(escrow_id, EscrowStatus.FUNDED, 1)
    assert exc_info.value.context.retry_after_ms == 1234


async def test_sql_backend_passes_retry_hint(monkeypatch):
    monkeypatch.setattr(db_module, "db_manager", None)
    store = deps.build_event_store(Settings(
        event_store_backend="sql", database_url="sqlite+aiosqlite:///:memory:",
        contention_retry_after_ms=900,
    ))
    assert store._retry_after_ms == 900
    await db_module.db_manager.dispose()
