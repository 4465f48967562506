"""
Logging configuration
"""

import logging
import sys
from typing import Optional
from core.config import settings

# Libraries that log every statement, request or job tick at INFO
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "apscheduler", "httpx")


def setup_logging(level: Optional[str] = None):
    """
    Configure application logging.

    Args:
        level: Overrides LOG_LEVEL, e.g. "DEBUG" for a one-off export run
    """
    level_name = (level or settings.LOG_LEVEL).upper()

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured at {level_name} level")
