"""Alembic environment for the SQL context/transcript store."""

from __future__ import annotations

import asyncio
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Ensure `src/` is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from config.settings import get_settings  # noqa: E402
from db.base import Base  # noqa: E402

import db.models  # noqa: F401,E402

target_metadata = Base.metadata

# DATABASE_URL from the environment or .env wins over alembic.ini.
DATABASE_URL = get_settings().database_url


def _configure(**kwargs) -> None:
    context.configure(target_metadata=target_metadata, compare_type=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


async def _run_online() -> None:
    engine = create_async_engine(DATABASE_URL, poolclass=pool.NullPool)
    async with engine.connect() as connection:
        await connection.run_sync(lambda sync_conn: _configure(connection=sync_conn))
    await engine.dispose()


if context.is_offline_mode():
    _configure(url=DATABASE_URL, literal_binds=True, dialect_opts={"paramstyle": "named"})
else:
    asyncio.run(_run_online())
