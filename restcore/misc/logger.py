"""
restcore library containing logging helper functionality
"""

import logging
from typing import Optional


def enforce_logger(logger: Optional[logging.Logger] = None) -> logging.Logger:
    """
    Return the given logger or the module logger, if no logger was given
    """

    if logger is not None and isinstance(logger, logging.Logger):
        return logger
    elif logger is not None:
        raise TypeError(f"Expected 'logging.Logger', got {type(logger)}")
    return logging.getLogger(__name__)


class NoDebugFilter(logging.Filter):
    """
    Logging filter that drops DEBUG messages of the specified logger (and its children)

    Use it to silence chatty libraries like the connection pool of
    SQLAlchemy without lowering the level of the root logger.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if super().filter(record):
            return record.levelno > logging.DEBUG
        return True
