"""API Dependencies — wiring between FastAPI routes and the escrow service.

Invariants:
    - Exactly one EscrowService per process (one lock registry per event loop)
    - Routes obtain the service only through get_escrow_service (overridable in tests)

Design Decisions:
    - Singleton initialized on startup by main.lifespan, mirroring db_manager
      (ADR: no global import side effects)
"""

from escrow_ledger.config import Settings
from escrow_ledger.core.repository_protocols import EventStore
from escrow_ledger.infrastructure import database
from escrow_ledger.infrastructure.escrow_locks import EscrowLockRegistry
from escrow_ledger.infrastructure.memory_event_store import InMemoryEventStore
from escrow_ledger.infrastructure.sql_event_store import SqlEventStore
from escrow_ledger.services.escrow_service import EscrowService

# Singleton (initialized on startup)
escrow_service: EscrowService | None = None


def build_event_store(settings: Settings) -> EventStore:
    """Pick the event store backend named in settings."""
    if settings.event_store_backend == "memory":
        return InMemoryEventStore(
            user_ids=settings.memory_user_ids,
            retry_after_ms=settings.contention_retry_after_ms,
        )
    manager = database.init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    return SqlEventStore(
        manager,
        lock_timeout_ms=settings.lock_timeout_ms,
        retry_after_ms=settings.contention_retry_after_ms,
    )


def init_escrow_service(settings: Settings) -> EscrowService:
    global escrow_service
    escrow_service = EscrowService(
        build_event_store(settings),
        EscrowLockRegistry(retry_after_ms=settings.contention_retry_after_ms),
        lock_timeout_seconds=settings.lock_timeout_ms / 1000,
    )
    return escrow_service


def get_escrow_service() -> EscrowService:
    """FastAPI dependency for the escrow service."""
    if not escrow_service:
        raise RuntimeError("Escrow service not initialized")
    return escrow_service
