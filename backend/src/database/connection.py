"""
Async database engine, session factory and transaction helpers.

The engine and session factory are created lazily on first use. Request
handlers get a session through the ``get_db`` dependency; services that need
an explicit transaction boundary wrap their writes in ``unit_of_work``.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from src.core.config import get_settings
from src.core.logging import get_logger

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def convert_database_url_to_async(url: str) -> str:
    """
    Swap a sync driver URL for its async counterpart.

    Args:
        url: Database connection URL

    Returns:
        URL using asyncpg (PostgreSQL) or aiosqlite (SQLite)
    """
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def create_engine() -> AsyncEngine:
    """
    Create the async engine for the configured database.

    SQLite gets the driver defaults; PostgreSQL gets a sized connection pool
    (or NullPool in the test environment).
    """
    settings = get_settings()
    database_url = convert_database_url_to_async(settings.database_url)

    if settings.is_sqlite:
        engine = create_async_engine(database_url, echo=settings.debug)
    elif settings.environment == "test":
        engine = create_async_engine(
            database_url,
            echo=settings.debug,
            poolclass=NullPool,
        )
    else:
        engine = create_async_engine(
            database_url,
            echo=settings.debug,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={
                "server_settings": {"application_name": settings.app_name},
                "command_timeout": 60,
                "timeout": 10,
            },
        )

    logger.info(
        "Database engine created",
        dialect=engine.dialect.name,
        environment=settings.environment,
    )
    return engine


def get_engine() -> AsyncEngine:
    """
    Get or create the global async engine.

    Raises:
        RuntimeError: If engine initialization fails
    """
    global _engine

    if _engine is None:
        try:
            _engine = create_engine()
        except Exception as e:
            logger.error(
                "Failed to create database engine",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RuntimeError(f"Database engine initialization failed: {e}") from e

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the global session factory."""
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Database session factory created")

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Open a session that commits on success and rolls back on error.

    Services commit their own units of work, so the final commit here is
    usually a no-op.
    """
    session = get_session_factory()()

    try:
        yield session
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.warning(
            "Database session rolled back",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a request-scoped session.

    Example:
        @router.get("/basket")
        async def get_basket(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with get_session() as session:
        yield session


@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Explicit transaction boundary around a group of writes.

    Everything flushed inside the block is committed together when the block
    exits normally. Any exception rolls the whole session back before it
    propagates, so a failed block never leaves partial rows behind.

    Example:
        async with unit_of_work(session):
            session.add_all(orders)
            await repository.clear_lines(basket.id)
    """
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise


async def check_database_health() -> bool:
    """Run a trivial query; return False instead of raising on failure."""
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.warning(
            "Database health check failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return False


async def close_database_connections() -> None:
    """Dispose of the engine during application shutdown."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        logger.info("Database connections closed and engine disposed")

    _engine = None
    _session_factory = None
