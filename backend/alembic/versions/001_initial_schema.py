"""Initial schema — escrow_users, escrow_metadata, escrow_events.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

escrow_events is append-only: UNIQUE (escrow_id, version) is what turns a lost
race into a rejected insert instead of a duplicate or a gap.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "escrow_users",
        sa.Column("user_id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("display_name", sa.String(200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("user_id >= 0", name="ck_escrow_users_user_id_non_negative"),
    )

    op.create_table(
        "escrow_metadata",
        sa.Column("escrow_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("buyer_id", sa.Integer, sa.ForeignKey("escrow_users.user_id"), nullable=False),
        sa.Column("seller_id", sa.Integer, sa.ForeignKey("escrow_users.user_id"), nullable=False),
        sa.Column("arbiter_id", sa.Integer, sa.ForeignKey("escrow_users.user_id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("amount > 0", name="ck_escrow_metadata_amount_positive"),
        sa.CheckConstraint(
            "buyer_id <> seller_id AND buyer_id <> arbiter_id AND seller_id <> arbiter_id",
            name="ck_escrow_metadata_distinct_roles",
        ),
    )

    op.create_table(
        "escrow_events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("escrow_id", sa.Integer, sa.ForeignKey("escrow_metadata.escrow_id"), nullable=False),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("actor_id", sa.Integer, nullable=False),
        sa.Column("payload", sa.JSON, nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("escrow_id", "version", name="uq_escrow_events_escrow_version"),
        sa.CheckConstraint("version >= 1", name="ck_escrow_events_version_positive"),
    )
    op.create_index("ix_escrow_events_escrow_id", "escrow_events", ["escrow_id"])


def downgrade() -> None:
    op.drop_index("ix_escrow_events_escrow_id", table_name="escrow_events")
    op.drop_table("escrow_events")
    op.drop_table("escrow_metadata")
    op.drop_table("escrow_users")
