from __future__ import annotations
import os
import sys
import asyncio
import logging
from pathlib import Path
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy import engine_from_config
from sqlalchemy.engine.url import make_url

# --- Ensure project root and src/ on sys.path ---
ROOT = Path(__file__).resolve().parents[1]  # migrations/ -> project root
for p in (ROOT, ROOT / "src"):
    s = str(p)
    if p.exists() and s not in sys.path:
        sys.path.insert(0, s)

from docvault.db import models  # noqa: E402,F401  registers tables on Base.metadata
from docvault.db.base import Base  # noqa: E402
from docvault.db.settings import get_db_settings  # noqa: E402

# --- Alembic config & logging ---
config = context.config
USE_APP_LOGGING = os.getenv("ALEMBIC_USE_APP_LOGGING", "1") == "1"
if USE_APP_LOGGING:
    from docvault.app import setup_logging

    setup_logging(level=os.getenv("LOG_LEVEL", "INFO"), fmt=os.getenv("LOG_FORMAT"))
    logging.getLogger(__name__).debug("Alembic using app logging setup.")
elif config.config_file_name is not None:
    fileConfig(config.config_file_name)

# --- Database URL: DB_DATABASE_URL / DATABASE_URL win over alembic.ini ---
if os.getenv("DB_DATABASE_URL") or os.getenv("DATABASE_URL") or not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", get_db_settings().resolved_database_url)

target_metadata = Base.metadata

# --- Choose async/sync path from URL automatically ---
url_str = config.get_main_option("sqlalchemy.url") or ""
is_async = make_url(url_str).get_dialect().driver in {"asyncpg", "aiosqlite"}


def run_migrations_offline():
    context.configure(
        url=url_str,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        compare_server_default=True,
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online_async():
    from sqlalchemy.ext.asyncio import create_async_engine

    connectable = create_async_engine(url_str, poolclass=pool.NullPool)
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


def run_migrations_online_sync():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        do_run_migrations(connection)
    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
elif is_async:
    asyncio.run(run_migrations_online_async())
else:
    run_migrations_online_sync()
