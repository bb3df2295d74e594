"""
Database engine and session factory.

The engine owns the asyncpg connection pool shared by every request handler
and the result reconciliation consumer in the gateway process. Pool checkout
and checkin are the only concurrency-sensitive points; each repository call
runs in its own short transaction and relies on PostgreSQL applying a single
row update atomically.
"""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from docflow.core.config import Settings
from docflow.models.documents import Base

logger = logging.getLogger(__name__)


def create_engine(settings: Settings) -> AsyncEngine:
    """Build the pooled async engine from settings."""
    return create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_pre_ping=True,          # detect stale connections before use
        pool_recycle=3600,           # recycle connections every hour
        echo=settings.db_echo_sql,   # log SQL in dev; disable in prod
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False keeps ORM objects usable after commit
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """
    Development helper that creates tables from ORM metadata.
    Existing tables are left untouched.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/checked")


async def check_db_health(engine: AsyncEngine) -> dict:
    """Ping the database; used at startup and by readiness checks."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:
        logger.error("DB health check failed: %s", exc)
        return {"status": "error", "detail": str(exc)}
