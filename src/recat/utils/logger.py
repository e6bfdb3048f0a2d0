"""Logging setup for the command line."""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "WARNING") -> None:
    """Configure the root logger to write to stderr.

    Args:
        level: Log level name ('DEBUG', 'INFO', 'WARNING', 'ERROR')
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    # Replace handlers from an earlier call instead of stacking them
    for existing in list(root_logger.handlers):
        if getattr(existing, "_recat_handler", False):
            root_logger.removeHandler(existing)
    handler._recat_handler = True
    root_logger.addHandler(handler)

    # SQL echo is noisy even at INFO
    logging.getLogger("sqlalchemy").setLevel(max(log_level, logging.WARNING))
