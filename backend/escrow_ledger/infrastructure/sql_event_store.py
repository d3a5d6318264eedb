"""SQL Event Store — EventStore over SQLAlchemy async sessions (PostgreSQL in production).

Invariants:
    - One transaction() == one DB transaction: commit on clean exit, rollback otherwise
    - lock_escrow takes SELECT ... FOR UPDATE on the metadata row; on PostgreSQL the
      wait is bounded by SET LOCAL lock_timeout and a timeout raises ContentionError
    - append claims max(version) + 1; the UNIQUE (escrow_id, version) constraint turns a
      concurrent claim into ContentionError, never into a duplicate or a gap
    - Every ContentionError carries the configured retry_after_ms hint
    - ORM rows never leave this module: callers receive core dataclasses

Design Decisions:
    - Row lock on escrow_metadata (not on the latest event): the metadata row exists
      from creation on and is never written again, so it is a stable lock target
    - Errors not mapped here surface as StorageError via DatabaseSessionManager.session()
"""

import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncIterator, Iterable

from sqlalchemy import select, func, text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from escrow_ledger.core.domain_types import (
    EscrowEvent, EscrowId, EscrowMetadata, EventId, EventType, ProposedPayload,
    Roles, UserId, parse_event_type, payload_from_json, payload_to_json,
)
from escrow_ledger.core.errors import ContentionError, ErrorContext
from escrow_ledger.infrastructure.database import DatabaseSessionManager
from escrow_ledger.models.escrow_event import EscrowEventRow
from escrow_ledger.models.escrow_metadata import EscrowMetadataRow
from escrow_ledger.models.escrow_user import EscrowUser

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE for lock_not_available (raised when lock_timeout expires)
_LOCK_NOT_AVAILABLE = "55P03"


def to_metadata(row: EscrowMetadataRow) -> EscrowMetadata:
    return EscrowMetadata(
        escrow_id=EscrowId(row.escrow_id),
        amount=Decimal(row.amount),
        buyer_id=UserId(row.buyer_id),
        seller_id=UserId(row.seller_id),
        arbiter_id=UserId(row.arbiter_id),
        created_at=row.created_at,
    )


def to_event(row: EscrowEventRow) -> EscrowEvent:
    event_type = parse_event_type(row.event_type)
    return EscrowEvent(
        id=EventId(row.id),
        escrow_id=EscrowId(row.escrow_id),
        event_type=event_type,
        actor_id=UserId(row.actor_id),
        version=row.version,
        created_at=row.created_at,
        payload=payload_from_json(event_type, row.payload),
    )


def _sqlstate(error: DBAPIError) -> str | None:
    orig = error.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


class SqlEventStore:
    """EventStore backed by escrow_metadata / escrow_events tables."""

    def __init__(
        self,
        db: DatabaseSessionManager,
        lock_timeout_ms: int = 5000,
        retry_after_ms: int = 250,
    ):
        self._db = db
        self._lock_timeout_ms = lock_timeout_ms
        self._retry_after_ms = retry_after_ms

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqlTransaction"]:
        async with self._db.session() as session:
            async with session.begin():
                yield SqlTransaction(
                    session, self._db.dialect_name,
                    self._lock_timeout_ms, self._retry_after_ms,
                )

    async def health_check(self) -> bool:
        return await self._db.health_check()


class SqlTransaction:
    """Unit of work over one AsyncSession transaction."""

    def __init__(
        self,
        session: AsyncSession,
        dialect: str,
        lock_timeout_ms: int,
        retry_after_ms: int | None = None,
    ):
        self._session = session
        self._dialect = dialect
        self._lock_timeout_ms = lock_timeout_ms
        self._retry_after_ms = retry_after_ms

    async def lock_escrow(self, escrow_id: EscrowId) -> EscrowMetadata | None:
        if self._dialect == "postgresql":
            await self._session.execute(
                text(f"SET LOCAL lock_timeout = '{int(self._lock_timeout_ms)}ms'"),
            )
        try:
            result = await self._session.execute(
                select(EscrowMetadataRow)
                .where(EscrowMetadataRow.escrow_id == escrow_id)
                .with_for_update(),
            )
        except DBAPIError as e:
            if _sqlstate(e) != _LOCK_NOT_AVAILABLE:
                raise
            logger.warning(
                "Row lock wait exceeded lock_timeout",
                extra={"escrow_id": escrow_id, "error_code": "CONTENTION"},
            )
            raise ContentionError(
                f"Escrow {escrow_id} is busy; retry the command",
                retry_after_ms=self._retry_after_ms,
                context=ErrorContext(escrow_id=escrow_id),
            ) from e
        row = result.scalar_one_or_none()
        return to_metadata(row) if row else None

    async def get_metadata(self, escrow_id: EscrowId) -> EscrowMetadata | None:
        row = await self._session.get(EscrowMetadataRow, escrow_id)
        return to_metadata(row) if row else None

    async def load_events(self, escrow_id: EscrowId) -> list[EscrowEvent]:
        result = await self._session.execute(
            select(EscrowEventRow)
            .where(EscrowEventRow.escrow_id == escrow_id)
            .order_by(EscrowEventRow.version),
        )
        return [to_event(row) for row in result.scalars().all()]

    async def _max_version(self, escrow_id: EscrowId) -> int:
        result = await self._session.execute(
            select(func.coalesce(func.max(EscrowEventRow.version), 0))
            .where(EscrowEventRow.escrow_id == escrow_id),
        )
        return int(result.scalar_one())

    async def append(
        self,
        escrow_id: EscrowId,
        event_type: EventType,
        actor_id: UserId,
        payload: ProposedPayload | None = None,
        expected_version: int | None = None,
    ) -> EscrowEvent:
        current = await self._max_version(escrow_id)
        if expected_version is not None and expected_version != current:
            raise ContentionError(
                f"Escrow {escrow_id} moved to version {current} "
                f"(expected {expected_version})",
                retry_after_ms=self._retry_after_ms,
                context=ErrorContext(escrow_id=escrow_id, actor_id=actor_id),
            )
        row = EscrowEventRow(
            escrow_id=escrow_id,
            event_type=event_type.value,
            actor_id=actor_id,
            payload=payload_to_json(payload) if event_type == EventType.PROPOSED else None,
            version=current + 1,
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise ContentionError(
                f"Version {current + 1} of escrow {escrow_id} already exists",
                retry_after_ms=self._retry_after_ms,
                context=ErrorContext(escrow_id=escrow_id, actor_id=actor_id),
            ) from e
        return to_event(row)

    async def insert_metadata(self, amount: Decimal, roles: Roles) -> EscrowMetadata:
        row = EscrowMetadataRow(
            amount=amount,
            buyer_id=roles.buyer_id,
            seller_id=roles.seller_id,
            arbiter_id=roles.arbiter_id,
        )
        self._session.add(row)
        await self._session.flush()
        return to_metadata(row)

    async def find_missing_users(self, user_ids: Iterable[UserId]) -> set[UserId]:
        wanted = set(user_ids)
        if not wanted:
            return set()
        result = await self._session.execute(
            select(EscrowUser.user_id).where(EscrowUser.user_id.in_(wanted)),
        )
        return wanted - {UserId(u) for u in result.scalars().all()}

    async def list_all_events(self, limit: int, offset: int) -> list[EscrowEvent]:
        result = await self._session.execute(
            select(EscrowEventRow)
            .order_by(EscrowEventRow.id.desc())
            .limit(limit)
            .offset(offset),
        )
        return [to_event(row) for row in result.scalars().all()]
