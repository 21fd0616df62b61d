"""Logging configuration for the lokoctl package."""
import logging
import sys

from .config import Config

# Libraries which log every HTTP request at DEBUG level
NOISY_LOGGERS = ("urllib3", "kubernetes")


def setup_logging(debug_mode: bool = False) -> None:
    """Configure root logging for a CLI invocation.

    Args:
        debug_mode: Log at DEBUG level and keep third-party loggers verbose
    """
    level = logging.DEBUG if debug_mode else getattr(logging, Config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format=Config.LOG_FORMAT,
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr,
        force=True,
    )
    if not debug_mode:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
