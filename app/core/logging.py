"""
Logging setup shared by the API process and the CLI scripts.
"""
import logging
from typing import Any, MutableMapping, Optional, Tuple

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging once for the process.

    Args:
        level: Log level name (defaults to settings.LOG_LEVEL)
    """
    if level is None:
        from app.core.config import settings
        level = settings.LOG_LEVEL

    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


class ImportJobLogger(logging.LoggerAdapter):
    """Logger adapter that stamps every message with the import job id."""

    def __init__(self, logger: logging.Logger, job_id: str):
        super().__init__(logger, {"job_id": job_id})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs.setdefault("extra", {}).update(self.extra)
        return f"[import {self.extra['job_id']}] {msg}", kwargs
