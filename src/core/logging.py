"""
Loguru setup shared by the API and the client scripts.

Standard library logging (uvicorn, httpx, openai) is routed into loguru so
that every record goes through the same sink and format.
"""

import logging
import sys

from loguru import logger

from .config import settings


class InterceptHandler(logging.Handler):
    """Forward standard logging records to loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str | None = None):
    """
    Configure loguru once and return the logger.

    In dev the output is human readable; in any other APP_ENV records are
    serialized as JSON lines for log aggregation.
    """
    level = (level or settings.log_level).upper()

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        serialize=settings.app_env != "dev",
        backtrace=False,
        diagnose=False,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).handlers = [InterceptHandler()]
        logging.getLogger(name).propagate = False

    return logger
