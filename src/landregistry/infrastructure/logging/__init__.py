"""
Logging setup shared by the CLI and embedding applications.

Infrastructure modules log through the standard ``logging`` module; workflows log
through loguru. ``configure_logging`` points both at the same level.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
AUDIT_LOGGER_NAME = "landregistry.audit"


def configure_logging(level: str = "INFO") -> None:
    level = (level or "INFO").upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger.remove()
    logger.add(sys.stderr, level=level)
