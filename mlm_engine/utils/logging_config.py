"""
Loguru configuration for scripts and embedding applications.
"""

import sys

from loguru import logger


def configure_logging(level: str = "INFO", serialize: bool = False) -> None:
    """
    Replace default loguru sinks with a single stderr sink.

    Args:
        level: Minimum level name
        serialize: Emit JSON records (structured ``extra`` included)
    """
    logger.remove()
    logger.add(sys.stderr, level=level, serialize=serialize)
