"""ORM Models — SQLAlchemy declarative models for the escrow ledger tables.

Invariants:
    - All models inherit from Base (db/base.py)
    - EscrowMetadataRow is the aggregate root; every event is scoped by escrow_id

Design Decisions:
    - One file per table for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs (ADR: standard SQLAlchemy pattern)
"""

from escrow_ledger.models.escrow_user import EscrowUser  # noqa: F401
from escrow_ledger.models.escrow_metadata import EscrowMetadataRow  # noqa: F401
from escrow_ledger.models.escrow_event import EscrowEventRow  # noqa: F401
