from __future__ import annotations

import sys
from typing import Optional

from loguru import logger

from .config import LOG_FILE, LOG_LEVEL


def configure_logging(level: str = LOG_LEVEL, log_file: Optional[str] = LOG_FILE) -> None:
    """Reset loguru sinks: stderr at ``level``, plus a rotating file when configured."""
    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        logger.add(log_file, level=level, rotation="10 MB", retention=5, enqueue=True)
        logger.info("Logging to {}", log_file)
