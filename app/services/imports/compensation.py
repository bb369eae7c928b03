"""
Scoped compensating actions for multi-step row imports.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from app.core.exceptions import CompensationError

logger = logging.getLogger("cronos.imports.compensation")


@asynccontextmanager
async def compensating(undo: Callable[[], Awaitable[None]], description: str) -> AsyncIterator[None]:
    """
    Run ``undo`` if the enclosed block fails.

    The original error is re-raised after a successful undo. When the undo
    fails as well, a CompensationError carrying both messages is raised
    instead, so neither failure is lost.

    Usage:
        identity_id = await provider.create_identity(...)
        async with compensating(lambda: provider.delete_identity(identity_id), "delete identity"):
            await profiles.create(obj_in=profile)

    Args:
        undo: Coroutine factory reverting the completed step
        description: Short label of the undo for logs and messages
    """
    try:
        yield
    except Exception as exc:
        logger.info(f"Step failed, running compensation: {description}")
        try:
            await undo()
        except Exception as undo_exc:
            logger.error(f"Compensation '{description}' failed: {undo_exc}")
            raise CompensationError(
                f"{exc}. Additionally, failed to {description}: {undo_exc}",
                details={"error": str(exc), "compensation_error": str(undo_exc)},
            ) from exc
        raise
