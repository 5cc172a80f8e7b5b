"""Alembic async env for the orchestrator schema.

The target URL comes from app settings (MySQL via asyncmy by default) unless
overridden on the command line with ``-x url=...``. SQLite targets run in batch
mode, since SQLite cannot ALTER most column and constraint changes in place.
"""
from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection, make_url
from sqlalchemy.ext.asyncio import async_engine_from_config

from app.config import get_settings
from app.database import Base
import app.models  # noqa: F401  registers projects, entities, tasks and assets

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def _database_url() -> str:
    """`-x url=...` wins over DATABASE_URL from settings."""
    return context.get_x_argument(as_dictionary=True).get("url") or get_settings().DATABASE_URL


database_url = _database_url()
config.set_main_option("sqlalchemy.url", database_url)
target_metadata = Base.metadata

# Shared by offline and online mode
CONFIGURE_OPTS = {
    "target_metadata": target_metadata,
    "compare_type": True,
    "render_as_batch": make_url(database_url).get_backend_name() == "sqlite",
}


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    context.configure(
        url=database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **CONFIGURE_OPTS,
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, **CONFIGURE_OPTS)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
