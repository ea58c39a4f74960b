"""
Logging utility.

Provides structured JSON-line logging on top of the standard logging module.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from prep_tracker.config import LOG_LEVEL


class StructuredLogger:
    """Structured logger emitting one JSON document per record."""

    def __init__(self, name: str, level: int | str = LOG_LEVEL):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            level: Logging level
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        # Prevent adding handlers multiple times
        if not self.logger.handlers:
            self._setup_handlers()

    def _setup_handlers(self):
        """Set up logging handlers."""
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter("%(message)s"))

        self.logger.addHandler(console_handler)

    def _build(self, level: int, message: str, **kwargs) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": logging.getLevelName(level),
            "message": message,
            "service": self.logger.name,
        }
        log_data.update(kwargs)
        return json.dumps(log_data, default=str)

    def _log_structured(self, level: int, message: str, **kwargs):
        """
        Log a structured message.

        Args:
            level: Logging level
            message: Log message
            **kwargs: Additional structured data
        """
        if self.logger.isEnabledFor(level):
            self.logger.log(level, self._build(level, message, **kwargs))

    def debug(self, message: str, **kwargs):
        self._log_structured(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log_structured(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log_structured(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log_structured(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log exception with traceback."""
        if self.logger.isEnabledFor(logging.ERROR):
            self.logger.exception(self._build(logging.ERROR, message, exception=True, **kwargs))


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger.

    Args:
        name: Logger name, usually the module ``__name__``

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name)
