"""Logging configuration for the workflow engine."""

import logging
import sys
import json
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from pathlib import Path


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured logging with JSON output."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info)
            }

        if hasattr(record, 'extra_fields'):
            log_entry.update(record.extra_fields)

        return json.dumps(log_entry, default=str)


# Context bound by the running engine; copied into tasks it spawns
_workflow_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar("workflow_context", default=None)


class WorkflowContextFilter(logging.Filter):
    """Filter that stamps the bound workflow context onto log records.

    Fields passed explicitly through ``log_with_context`` win over bound ones.
    """

    def set_context(self, **kwargs):
        current = _workflow_context.get() or {}
        _workflow_context.set({**current, **kwargs})

    def clear_context(self):
        _workflow_context.set(None)

    def filter(self, record: logging.LogRecord) -> bool:
        explicit = getattr(record, 'extra_fields', {})
        record.extra_fields = {**(_workflow_context.get() or {}), **explicit}
        return True


_context_filter = WorkflowContextFilter()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    structured: bool = False,
    max_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Configure logging for the workflow engine.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output
        log_format: Custom log format string
        structured: Whether to use structured JSON logging
        max_size: Maximum log file size in bytes before rotation
        backup_count: Number of backup files to keep

    Returns:
        Root logger instance
    """
    if structured:
        formatter = StructuredFormatter()
    else:
        if log_format is None:
            log_format = "%(asctime)s - %(name)s - %(levelname)s - [%(module)s:%(funcName)s:%(lineno)d] - %(message)s"

        formatter = logging.Formatter(
            fmt=log_format,
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(_context_filter)
    root_logger.addHandler(console_handler)

    if log_file:
        from logging.handlers import RotatingFileHandler

        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_size,
            backupCount=backup_count
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(_context_filter)
        root_logger.addHandler(file_handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("workflow_engine.core").setLevel(logging.DEBUG if level.upper() == "DEBUG" else logging.INFO)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given name."""
    return logging.getLogger(name)


def set_logging_context(**kwargs):
    """Bind context fields to log records emitted from the current task.

    Tasks created afterwards inherit the bound fields.
    """
    _context_filter.set_context(**kwargs)


def get_logging_context() -> Dict[str, Any]:
    return dict(_workflow_context.get() or {})


def clear_logging_context():
    """Clear all logging context fields."""
    _context_filter.clear_context()


def log_with_context(logger: logging.Logger, level: int, message: str, **context):
    """Log a message with additional context fields."""
    extra = {"extra_fields": context}
    logger.log(level, message, extra=extra)
