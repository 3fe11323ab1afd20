"""
Logging configuration for swapwatch

Provides:
- Console and file logging
- Log rotation
- Configurable log levels
"""

import sys
from typing import Any, Dict

from loguru import logger

LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"

# Replace loguru's default handler with a plain console handler until configured
logger.remove()
logger.add(sys.stderr, format=LOG_FORMAT, level="INFO", enqueue=True)


def setup_logger(config: Dict[str, Any] = None) -> None:
    """
    Configure logging from the [logging] config table

    Args:
        config: Logging configuration dictionary containing:
            - level: Log level
            - file: Log file path
            - rotation: Rotation rule for the log file
            - retention: How long rotated files are kept
    """
    if not config:
        return

    logger.remove()

    level = config.get("level", "INFO")
    logger.add(sys.stderr, format=LOG_FORMAT, level=level, enqueue=True)

    if log_file := config.get("file"):
        logger.add(
            log_file,
            format=LOG_FORMAT,
            level=level,
            rotation=config.get("rotation", "100 MB"),
            retention=config.get("retention", "7 days"),
            compression="zip",
            enqueue=True,
        )
