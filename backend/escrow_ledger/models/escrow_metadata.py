"""EscrowMetadata ORM — immutable terms of an escrow; the aggregate root of its event stream.

Invariants:
    - escrow_id is generated on insert and never reused
    - amount > 0 and buyer/seller/arbiter pairwise distinct (CHECK constraints)
    - Rows are inserted once, never updated or deleted
    - The row is the per-escrow lock target: SELECT ... FOR UPDATE serializes submissions

Design Decisions:
    - No status column: status is derived by replaying escrow_events (ADR: no drifting cache)
    - Numeric(18, 2) for amount: exact decimal money, never float
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Integer, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from escrow_ledger.db.base import Base


class EscrowMetadataRow(Base):
    """Escrow terms — owns the escrow's event stream."""
    __tablename__ = "escrow_metadata"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_escrow_metadata_amount_positive"),
        CheckConstraint(
            "buyer_id <> seller_id AND buyer_id <> arbiter_id AND seller_id <> arbiter_id",
            name="ck_escrow_metadata_distinct_roles",
        ),
    )

    escrow_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    buyer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("escrow_users.user_id"), nullable=False,
    )
    seller_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("escrow_users.user_id"), nullable=False,
    )
    arbiter_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("escrow_users.user_id"), nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    events: Mapped[list["EscrowEventRow"]] = relationship(
        "EscrowEventRow", back_populates="escrow",
        order_by="EscrowEventRow.version", lazy="raise",
    )
