"""
Database Connection Management

Process-wide async engine and session factory (SQLAlchemy 2.0).
Initialized exactly once at startup and handed to request handlers
through FastAPI dependencies.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
import time

import structlog
from sqlalchemy import event, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from cardlink.config import get_settings
from cardlink.database.models import Base

logger = structlog.get_logger(__name__)

# Global engine and session factory
_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _engine_config(url: str) -> dict:
    settings = get_settings()
    config = {
        "echo": settings.database.echo,
        "pool_pre_ping": True,
    }
    backend = make_url(url).get_backend_name()
    if backend == "postgresql":
        config.update({
            "pool_size": settings.database.pool_size,
            "max_overflow": settings.database.max_overflow,
            "pool_timeout": settings.database.pool_timeout,
        })
    elif backend == "sqlite":
        # writers queue on the database lock instead of failing fast
        config["connect_args"] = {"timeout": settings.database.pool_timeout}
    return config


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async def init_database(url: Optional[str] = None, create_schema: Optional[bool] = None) -> AsyncEngine:
    """
    Initialize the database connection pool.

    Idempotent: a second call returns the engine created by the first.

    Args:
        url: Async database URL, defaults to the configured one
        create_schema: Create missing tables, defaults to DATABASE_CREATE_SCHEMA

    Returns:
        AsyncEngine: The initialized database engine
    """
    global _engine, _async_session_factory

    if _engine is not None:
        logger.warning("Database already initialized")
        return _engine

    settings = get_settings()
    url = url or settings.database.async_url
    if create_schema is None:
        create_schema = settings.database.create_schema

    engine = create_async_engine(url, **_engine_config(url))
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if create_schema:
                await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        await engine.dispose()
        raise

    _engine = engine
    _async_session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    logger.info(
        "Database connection established",
        backend=engine.dialect.name,
        schema_created=create_schema,
    )
    return _engine


async def close_database() -> None:
    """Dispose of the connection pool."""
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        logger.info("Database connection pool closed")


def get_engine() -> AsyncEngine:
    """
    Get the database engine.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _engine


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session from the pool.

    Commits on clean exit, rolls back on error and always closes.

    Example:
        async with get_db() as db:
            account = await db.get(Account, account_id)
    """
    if _async_session_factory is None:
        logger.error("Database not initialized when get_db() called")
        raise RuntimeError("Database not initialized. Call init_database() first.")

    session = _async_session_factory()
    try:
        yield session
        await session.commit()
    except Exception as e:
        logger.debug("Database session error, rolling back", error=str(e), error_type=type(e).__name__)
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_db_dependency() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions.

    Example:
        @router.get("/slug/{slug}")
        async def resolve(slug: str, db: AsyncSession = Depends(get_db_dependency)):
            ...
    """
    async with get_db() as session:
        yield session


async def check_database_health() -> dict:
    """
    Check database health status.

    Returns:
        dict: Health status with latency information
    """
    try:
        start = time.perf_counter()
        async with get_db() as db:
            await db.execute(text("SELECT 1"))
        latency_ms = (time.perf_counter() - start) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
        }
