"""Structured logging configuration for spannerload."""

import logging
import sys
from typing import Optional

try:
    from json_log_formatter import JSONFormatter
except ImportError:
    JSONFormatter = None  # type: ignore


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    sink_name: Optional[str] = None,
) -> None:
    """Configure logging for spannerload.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: If True, use JSON format; otherwise use normal format
        sink_name: Optional sink name added to every log line
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("spannerload")
    logger.setLevel(log_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if json_format:
        if JSONFormatter is None:
            raise ImportError(
                "json-log-formatter is required for JSON logging. "
                "Install it with: pip install spannerload[json-logs]"
            )
        formatter = JSONFormatter()
    else:
        formatter = StructuredFormatter()

    handler.setFormatter(formatter)
    if sink_name:
        handler.addFilter(_SinkNameFilter(sink_name))
    logger.addHandler(handler)


class _SinkNameFilter(logging.Filter):
    """Stamps records with the configured sink name unless they carry one."""

    def __init__(self, sink_name: str):
        super().__init__()
        self.sink_name = sink_name

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "sink_name"):
            record.sink_name = self.sink_name
        return True


class StructuredFormatter(logging.Formatter):
    """Structured formatter that adds context to log messages."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with context."""
        context = getattr(record, "context", {})

        parts = [f"[{record.levelname}]"]

        if hasattr(record, "sink_name"):
            parts.append(f"sink={record.sink_name}")

        if hasattr(record, "table"):
            parts.append(f"table={record.table}")

        if hasattr(record, "batch_id"):
            parts.append(f"batch={record.batch_id}")

        for key, value in context.items():
            parts.append(f"{key}={value}")

        parts.append(record.getMessage())

        if record.exc_info:
            parts.append("\n" + self.formatException(record.exc_info))

        return " ".join(parts)
