"""
Application lifecycle hooks.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.config import settings
from app.db.session import close_database_connections, initialize_database

logger = logging.getLogger("cronos")


async def startup_event_handler() -> None:
    """
    Connect to the database before serving requests.

    A failed connection is logged rather than raised so the health check
    still answers; import requests will then fail with a database error.
    """
    logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION} (auth provider: {settings.AUTH_PROVIDER})")

    try:
        await initialize_database()
    except Exception as e:
        logger.error(f"Database unavailable at startup: {e}")
        return

    logger.info("Database ready")


async def shutdown_event_handler() -> None:
    """Dispose of pooled database connections."""
    try:
        await close_database_connections()
    except Exception as e:
        logger.error(f"Error closing database connections: {e}")

    logger.info(f"{settings.PROJECT_NAME} stopped")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the startup hook before serving and the shutdown hook after."""
    await startup_event_handler()
    yield
    await shutdown_event_handler()
