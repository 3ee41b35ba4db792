"""
Logging Utility for the reminder core.

Emits one JSON object per log line so reminder events can be filtered by
task id and slot.
"""

import json
import logging
import os
import sys
from datetime import datetime
from typing import Dict, Optional


class StructuredLogger:
    """Structured logger writing JSON lines."""

    def __init__(self, name: str, level: Optional[int] = None):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            level: Logging level, defaults to the LOG_LEVEL environment variable
        """
        self.logger = logging.getLogger(name)
        if level is None:
            level = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").upper())
            if not isinstance(level, int):
                level = logging.INFO
        self.logger.setLevel(level)

        # Prevent adding handlers multiple times
        if not self.logger.handlers:
            self._setup_handlers()

    def _setup_handlers(self):
        """Set up logging handlers."""
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        self.logger.addHandler(console_handler)

    def _payload(self, level_name: str, message: str, fields: Dict) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": level_name,
            "message": message,
            "service": self.logger.name,
        }
        log_data.update(fields)
        return json.dumps(log_data, default=str)

    def _log_structured(self, level: int, message: str, **kwargs):
        """
        Log a structured message.

        Args:
            level: Logging level
            message: Log message
            **kwargs: Additional structured data (task_id, slot_index, ...)
        """
        if self.logger.isEnabledFor(level):
            self.logger.log(level, self._payload(logging.getLevelName(level), message, kwargs))

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
            kwargs["exception"] = True
            self.logger.exception(self._payload("ERROR", message, kwargs))


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger for a module.

    Args:
        name: Logger name, usually ``__name__``

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name)
