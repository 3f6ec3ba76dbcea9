"""
Logging utilities for the device registrar.

Provides a coloured console formatter that appends registration context
(duration, device id, outcome, attempt) and a timer for engine operations.
"""

import logging
import time
import sys
from datetime import datetime
from typing import Optional, Any


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for different log levels."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    # Record attributes rendered after the message when present
    CONTEXT_KEYS = ('duration_ms', 'device_id', 'outcome', 'attempt')

    def format(self, record):
        color = self.COLORS.get(record.levelname, '')
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        level_str = f"{color}{record.levelname:8}{self.RESET}"
        location = f"{record.module}.{record.funcName}" if record.funcName != '<module>' else record.module
        message = record.getMessage()

        extras = []
        for key in self.CONTEXT_KEYS:
            if not hasattr(record, key):
                continue
            value = getattr(record, key)
            if key == 'duration_ms':
                extras.append(f"duration={value:.1f}ms")
            else:
                extras.append(f"{key}={value}")

        extra_str = f" [{', '.join(extras)}]" if extras else ""
        formatted = f"{timestamp} | {level_str} | {location:30} | {message}{extra_str}"
        if record.exc_info:
            formatted = f"{formatted}\n{self.formatException(record.exc_info)}"
        return formatted


def setup_logging(level: str = "INFO") -> None:
    """
    Set up console logging on the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter())
    handler.setLevel(getattr(logging, level.upper()))

    root.setLevel(getattr(logging, level.upper()))
    root.addHandler(handler)

    logging.getLogger('uvicorn').setLevel(logging.INFO)
    logging.getLogger('uvicorn.access').setLevel(logging.INFO)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('aiosqlite').setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger by name.

    Args:
        name: Logger name (typically __name__)
    """
    return logging.getLogger(name)


class LogTimer:
    """
    Context manager for timing operations with automatic logging.

    Usage:
        with LogTimer(logger, "Registering device") as timer:
            # ... do work ...
            timer.add_info("outcome", "created")
    """

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        level: int = logging.INFO,
    ):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.start_time: Optional[float] = None
        self.extra_info: dict = {}

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.log(self.level, f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = (time.perf_counter() - self.start_time) * 1000

        extra = {'duration_ms': duration_ms}
        extra.update(self.extra_info)

        if exc_type is not None:
            self.logger.error(
                f"Failed: {self.operation} - {exc_val}",
                extra=extra
            )
        else:
            self.logger.log(
                self.level,
                f"Completed: {self.operation}",
                extra=extra
            )

        return False

    def add_info(self, key: str, value: Any) -> None:
        """Add extra info to the completion log."""
        self.extra_info[key] = value
