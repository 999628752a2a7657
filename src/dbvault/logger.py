"""Structured logging for dbvault operations."""
import logging
import json
import sys
import time
from contextlib import contextmanager
from typing import Optional

PACKAGE_LOGGER = "dbvault"
DEFAULT_LEVEL = "INFO"

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# JSON formatter for structured logging
class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(
    level: Optional[str] = None, json_format: bool = True, stream=None
) -> logging.Logger:
    """
    Install a single stream handler on the package logger.

    Safe to call repeatedly; the previous handler installed by this function
    is replaced rather than duplicated.

    Args:
        level: Log level name (default: INFO)
        json_format: Emit JSON lines (True) or plain text (False)
        stream: Output stream (default: stderr)

    Returns:
        logging.Logger: The configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    level_name = (level or DEFAULT_LEVEL).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    for existing in list(logger.handlers):
        if getattr(existing, "_dbvault_handler", False):
            logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT))
    handler._dbvault_handler = True
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def log_event(logger: logging.Logger, message: str, level: int = logging.INFO, **fields):
    """Log a message with structured fields."""
    logger.log(level, message, extra={"extra_fields": fields})


def log_error(logger: logging.Logger, operation: str, error: Exception, **context):
    """Log a failed operation with its error type and message."""
    error_message = str(error)
    logger.error(f"{operation} failed: {error_message}", extra={
        "extra_fields": {
            "operation": operation,
            "error_type": type(error).__name__,
            "error_message": error_message[:500],  # Truncate long errors
            **context
        }
    })


@contextmanager
def track_duration():
    """Context manager to track operation duration."""
    start_time = time.time()
    yield lambda: round((time.time() - start_time) * 1000, 2)  # Duration in ms
