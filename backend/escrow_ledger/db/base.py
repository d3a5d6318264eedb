"""SQLAlchemy Declarative Base — shared base class for all ORM models.

Invariants:
    - All models inherit from Base
    - Base is the single source of truth for table metadata
    - Unnamed indexes, foreign keys and primary keys get deterministic names, so
      Alembic migrations can refer to them

Design Decisions:
    - Separate file for Base: avoids circular imports between models
    - CHECK and UNIQUE constraints are always named explicitly on the model
"""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all escrow ledger ORM models."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
