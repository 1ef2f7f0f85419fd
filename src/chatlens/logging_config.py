"""Logging setup for the command-line entry point.

The library only emits records through loguru's shared ``logger``; sinks
are installed here so that importing chatlens never changes the host
application's logging.
"""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<level>{level:<8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>"
    " - <level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line}"
    " - {message}"
)


def configure_logging(level="WARNING", log_file=None, rotation="10 MB", retention=3):
    """Replace loguru's default sink with chatlens sinks.

    Args:
        level: Minimum level for every sink (e.g. "DEBUG", "INFO")
        log_file: Optional path of a rotating log file
        rotation: loguru rotation policy for the log file
        retention: Number of rotated files to keep

    Returns:
        List of handler ids added to the logger
    """
    level = level.upper()
    logger.remove()
    handler_ids = [logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(
            logger.add(
                str(log_file),
                level=level,
                format=FILE_FORMAT,
                rotation=rotation,
                retention=retention,
            )
        )

    logger.debug("Logging configured at {}", level)
    return handler_ids
