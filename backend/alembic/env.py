"""Alembic environment — async migration runner for the escrow ledger tables.

Invariants:
    - Base.metadata holds escrow_users, escrow_metadata and escrow_events before
      autogenerate runs (model modules imported below)
    - The URL comes from the same Settings the app uses, so postgresql:// is
      normalized to postgresql+asyncpg:// in exactly one place

Design Decisions:
    - DATABASE_URL set in the environment wins; otherwise alembic.ini's sqlalchemy.url
    - SQLite runs in batch mode: ALTER TABLE support there is partial
"""

import asyncio
import os
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

from escrow_ledger.config import Settings
from escrow_ledger.db.base import Base
from escrow_ledger.models.escrow_user import EscrowUser  # noqa: F401
from escrow_ledger.models.escrow_metadata import EscrowMetadataRow  # noqa: F401
from escrow_ledger.models.escrow_event import EscrowEventRow  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _migration_url() -> str:
    if os.environ.get("DATABASE_URL"):
        return Settings().database_url
    return config.get_main_option("sqlalchemy.url")


def _configure(**kwargs) -> None:
    url = kwargs.get("url") or _migration_url()
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL for the migrations without a live connection."""
    _configure(
        url=_migration_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = _migration_url()
    connectable = async_engine_from_config(
        section, prefix="sqlalchemy.", poolclass=pool.NullPool,
    )
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
