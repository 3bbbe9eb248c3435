"""Async engine and declarative base for the SQL store backend."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from config.settings import get_settings

LOGGER = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the call context and transcript tables."""


settings = get_settings()
engine = create_async_engine(settings.database_url, echo=False)
AsyncSessionFactory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create the store tables.

    With `AUTO_CREATE_DB_SCHEMA=false` the schema is left to Alembic
    (`alembic upgrade head`).
    """

    if not settings.auto_create_db_schema:
        LOGGER.info("Schema auto-creation disabled; expecting Alembic migrations")
        return

    # Import models so metadata is populated.
    import db.models  # noqa: F401

    bind = bind or engine
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    LOGGER.info("Call store tables ready on %s", bind.url.render_as_string(hide_password=True))


async def dispose_db() -> None:
    await engine.dispose()
