"""Logging configuration for the uploader."""
import logging
import sys
from rrweb_uploader.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level_for(environment: str) -> int:
    return logging.DEBUG if environment == "development" else logging.INFO


def configure_logger(name: str = "rrweb_uploader", environment: str = settings.environment) -> logging.Logger:
    """
    Build the application logger writing to stdout.

    Calling it again for the same name only adjusts the level, so the
    handler is never attached twice.

    Args:
        name: Logger name
        environment: Deployment environment ("development" enables DEBUG)

    Returns:
        The configured logger
    """
    configured = logging.getLogger(name)
    level = _level_for(environment)
    configured.setLevel(level)

    if not configured.handlers:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        configured.addHandler(stream_handler)

    for existing in configured.handlers:
        existing.setLevel(level)

    # Uvicorn installs its own root handlers
    configured.propagate = False
    return configured


logger = configure_logger()

__all__ = ["logger", "configure_logger"]
