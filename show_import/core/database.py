"""Async SQLAlchemy engine, session factory and the process-wide database client."""

import time
from collections.abc import AsyncGenerator
from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from show_import.core.config import settings
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Declarative base for import jobs and the organization records they are matched against."""


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine for ``database_url``.

    Pool sizing and the asyncpg statement cache switch only apply to
    PostgreSQL; SQLite URLs (local runs) get a plain engine.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return create_async_engine(url, echo=settings.db.echo)

    return create_async_engine(
        url,
        pool_size=settings.db.pool_size,
        max_overflow=settings.db.max_overflow,
        pool_pre_ping=True,
        echo=settings.db.echo,
        # PgBouncer in transaction mode cannot hold prepared statements
        connect_args={"statement_cache_size": 0},
    )


engine = build_engine(settings.db.connection_url)

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for FastAPI dependencies."""
    async with async_session_maker() as session:
        yield session


class DatabaseClient:
    """Startup, shutdown and health probing for one engine."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def create_tables(self) -> None:
        """Create missing tables; existing ones are left untouched."""
        from show_import.database import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        LOGGER.info(
            "Database tables verified",
            extra={"tables": sorted(Base.metadata.tables)},
        )

    async def health_check(self) -> Dict[str, Any]:
        """Round-trip a trivial query and report the latency."""
        started = time.perf_counter()
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            LOGGER.error(f"Database health check failed: {e}")
            return {"status": "unhealthy", "error": str(e)}

        return {
            "status": "healthy",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        }

    async def dispose(self) -> None:
        await self.engine.dispose()
        LOGGER.info("Database connection pool closed")


db_client = DatabaseClient(engine)


async def init_database(create_tables: bool = True) -> None:
    """Verify connectivity and, optionally, create the import tables.

    Raises:
        Exception: Whatever the driver raises when the database is unreachable
    """
    health = await db_client.health_check()
    if health["status"] != "healthy":
        raise ConnectionError(f"Database unreachable: {health.get('error')}")
    if create_tables:
        await db_client.create_tables()


async def close_database() -> None:
    await db_client.dispose()
