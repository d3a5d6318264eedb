"""EscrowUser ORM — the user directory the ledger validates participants against.

Invariants:
    - user_id is an externally assigned non-negative integer
    - The ledger only reads this table; directory management lives elsewhere
"""

from datetime import datetime, timezone

from sqlalchemy import Integer, String, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from escrow_ledger.db.base import Base


class EscrowUser(Base):
    """Known user identity."""
    __tablename__ = "escrow_users"
    __table_args__ = (
        CheckConstraint("user_id >= 0", name="ck_escrow_users_user_id_non_negative"),
    )

    user_id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=False,
    )
    display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
