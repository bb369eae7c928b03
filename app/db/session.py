"""
Async engine, session factory and session helpers.

The application talks to PostgreSQL through asyncpg; tests build their own
SQLite engine with build_engine and inject its factory.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Any, Dict, Optional, Type, TypeVar

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings
from app.db.base import Base

logger = logging.getLogger("cronos.db")


def build_engine(database_url: str, **overrides: Any) -> AsyncEngine:
    """
    Create an async engine with pool settings suited to the driver.

    SQLite (used by tests and local tooling) gets foreign keys enforced
    and no pool sizing, which its dialect does not accept.

    Args:
        database_url: Async SQLAlchemy URL
        overrides: Extra keyword arguments for create_async_engine

    Returns:
        AsyncEngine: Configured engine
    """
    options: Dict[str, Any] = {"echo": settings.DEBUG}
    is_sqlite = database_url.startswith("sqlite")
    if not is_sqlite:
        options.update(
            pool_size=20,
            max_overflow=30,
            pool_timeout=30,
            pool_recycle=3600,
            pool_pre_ping=True,
        )
    options.update(overrides)

    new_engine = create_async_engine(database_url, **options)

    if is_sqlite:
        @event.listens_for(new_engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Create a session factory bound to an engine."""
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False, autoflush=False)


engine = build_engine(settings.DATABASE_URL)
async_session_factory = build_session_factory(engine)


@asynccontextmanager
async def get_session(
    session_factory: Optional[async_sessionmaker] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    One unit of work: commit when the block exits cleanly, roll back and
    re-raise when it does not.

    Example:
        async with get_session() as session:
            session.add(subject)

    Args:
        session_factory: Factory to use instead of the application default
    """
    session = (session_factory or async_session_factory)()
    try:
        yield session
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.debug(f"Rolled back: {e}")
        raise
    finally:
        await session.close()


def get_session_factory() -> async_sessionmaker:
    """
    Dependency returning the session factory.

    Import runs open one session per row, so they receive the factory
    rather than a single request-scoped session. Tests override this.
    """
    return async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session dependency."""
    async with get_session() as session:
        yield session


RepositoryType = TypeVar("RepositoryType")


@asynccontextmanager
async def get_repository_context(
    repo_type: Type[RepositoryType],
    session_factory: Optional[async_sessionmaker] = None,
) -> AsyncGenerator[RepositoryType, None]:
    """
    A repository bound to a fresh session, committed on exit.

    Example:
        async with get_repository_context(BulkImportRepository) as repo:
            await repo.set_total(job_id, 120)
    """
    async with get_session(session_factory) as session:
        yield repo_type(session)


async def create_tables(bind: Optional[AsyncEngine] = None) -> None:
    """Create all tables known to the metadata (development and tests)."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def initialize_database() -> None:
    """
    Startup check: optionally create tables, then make sure the database
    answers a trivial query.

    Raises:
        sqlalchemy.exc.SQLAlchemyError: The database is unreachable
    """
    if settings.AUTO_CREATE_TABLES:
        await create_tables()

    async with get_session() as session:
        await session.execute(text("SELECT 1"))
    logger.info(f"Connected to {engine.url.render_as_string(hide_password=True)}")


async def close_database_connections() -> None:
    """Dispose of the engine's connection pool."""
    await engine.dispose()
    logger.info("Database connection pool disposed")
