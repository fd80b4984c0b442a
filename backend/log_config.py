"""
Logging setup

Routes stdlib logging (used by the core package and uvicorn) into loguru so
everything ends up in one sink. Imported for its side effect.
"""

import inspect
import logging
import os
import sys

from loguru import logger

LOG_LEVEL = os.environ.get("KILN_LOG_LEVEL", "INFO").upper()


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller that issued the logging call
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


logger.remove()
logger.add(
    sys.stderr,
    level=LOG_LEVEL,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>",
)

logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
