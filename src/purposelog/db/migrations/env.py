"""Alembic environment configuration.

Learn: Connects with the async engine and diffs the live schema against
purposelog.db.models for autogenerate.

The database URL comes from, in order:
1. config.attributes["database_url"] (programmatic runs, e.g. tests)
2. `alembic -x url=...` on the command line
3. PURPOSELOG_DATABASE_URL via Settings

SQLite cannot ALTER most column properties in place, so migrations on a
sqlite URL run in batch mode (copy-and-move tables).
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

from purposelog.config import settings
from purposelog.db.models import Base

config = context.config


def _database_url() -> str:
    return (
        config.attributes.get("database_url")
        or context.get_x_argument(as_dictionary=True).get("url")
        or settings.database_url
    )


database_url = _database_url()
config.set_main_option("sqlalchemy.url", database_url)

# Programmatic runs pass no ini file and keep the app's logging setup
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _configure_options() -> dict:
    """Options shared by offline and online runs."""
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": database_url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit SQL to stdout without a database connection."""
    context.configure(
        url=database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(connection=connection, **_configure_options())
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
