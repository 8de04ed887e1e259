import sys
import logging

from buzzsmile.core.config import settings

LOGGER_NAME = "buzzsmile"

_configured = False


def configure_logging(level: str = None):
    """
    Install one stdout handler on the package logger.

    Safe to call from the API startup, the Celery worker and every script;
    only the first call installs the handler.
    """
    global _configured
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel((level or settings.LOG_LEVEL).upper())

    if _configured:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    logger.propagate = False  # uvicorn has its own root handlers
    _configured = True
    return logger
