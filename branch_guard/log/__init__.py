# AGPL-3.0 License

import logging
import sys
from enum import Enum

from loguru import logger


class LoggingFormat(str, Enum):
    CONSOLE = "CONSOLE"
    JSON = "JSON"


def setup_logger(level: str = "INFO", fmt: LoggingFormat = LoggingFormat.CONSOLE):
    """
    Configure the global loguru logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)
        fmt: Console output or one JSON document per line

    Returns:
        The configured logger
    """
    log_level = logging.getLevelName(level.upper())
    if type(log_level) is not int:
        log_level = logging.INFO

    logger.remove(None)
    if fmt == LoggingFormat.JSON:
        logger.add(
            sys.stdout,
            level=log_level,
            format="{message}",
            colorize=False,
            serialize=True,
        )
    else:
        logger.add(sys.stdout, level=log_level, colorize=True)

    return logger


def get_logger(*args, **kwargs):
    return logger
