"""EscrowEvent ORM — append-only log of facts about an escrow.

Invariants:
    - (escrow_id, version) is UNIQUE: no gaps are created and no version is claimed twice
    - version >= 1; version order matches id order for a fixed escrow
    - Rows are never updated or deleted
    - payload is non-null only for EscrowProposed

Design Decisions:
    - event_type stored as plain string (not DB enum): future event kinds can be
      written by newer code without a migration, and replay ignores what it does not know
    - JSON payload: the tagged variant is rebuilt in core/domain_types.payload_from_json
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Integer, String, DateTime, JSON, ForeignKey, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from escrow_ledger.db.base import Base


class EscrowEventRow(Base):
    """One event in an escrow's stream."""
    __tablename__ = "escrow_events"
    __table_args__ = (
        UniqueConstraint("escrow_id", "version", name="uq_escrow_events_escrow_version"),
        CheckConstraint("version >= 1", name="ck_escrow_events_version_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    escrow_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("escrow_metadata.escrow_id"), nullable=False, index=True,
    )
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    escrow: Mapped["EscrowMetadataRow"] = relationship(
        "EscrowMetadataRow", back_populates="events",
    )
