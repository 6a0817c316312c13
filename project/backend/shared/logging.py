"""
Structured logging setup for all modules.

Provides JSON-structured logging with automatic job_id injection. Handlers
are installed once on the root logger by configure_logging().
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional
from uuid import UUID

from shared.config import settings

# Context variable for job_id
job_id_context: ContextVar[Optional[UUID]] = ContextVar("job_id", default=None)

# Standard LogRecord attributes, everything else on a record came from `extra`
_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "getMessage", "taskName"
}


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        job_id = job_id_context.get()

        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "message": record.getMessage(),
        }

        if job_id:
            log_data["job_id"] = str(job_id)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                # Convert complex types to strings, keep simple types as-is
                if isinstance(value, (str, int, float, bool, type(None))):
                    log_data[key] = value
                else:
                    log_data[key] = str(value)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


LOG_FILENAME = "app.log"
LOG_FILE_MAX_BYTES = 100 * 1024 * 1024  # 100MB
LOG_FILE_BACKUPS = 5

# Handlers installed by configure_logging, so they can be swapped or removed
_installed_handlers: List[logging.Handler] = []

_UNSET = object()


def configure_logging(level: Optional[str] = None, log_dir=_UNSET, force: bool = False) -> bool:
    """
    Install JSON handlers on the root logger.

    Called once by the application lifespan. Module loggers obtained with
    get_logger() propagate to these handlers; without this call records fall
    through to the standard library defaults.

    Args:
        level: Log level name (defaults to settings.log_level)
        log_dir: Directory for the rotating log file, None for stdout only
            (defaults to settings.log_dir)
        force: Replace handlers from an earlier call

    Returns:
        True if handlers were (re)installed, False if already configured
    """
    if _installed_handlers and not force:
        return False
    shutdown_logging()

    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or settings.log_level).upper(), logging.INFO))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JSONFormatter())
    handlers: List[logging.Handler] = [console_handler]

    directory = settings.log_dir if log_dir is _UNSET else log_dir
    if directory:
        path = Path(directory)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path / LOG_FILENAME,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS
        )
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    for handler in handlers:
        root.addHandler(handler)
        _installed_handlers.append(handler)
    return True


def shutdown_logging() -> None:
    """Remove and close the handlers installed by configure_logging."""
    root = logging.getLogger()
    for handler in _installed_handlers:
        root.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Module name (e.g., "slideshow.concatenator")

    Returns:
        Logger that propagates to the handlers of configure_logging()
    """
    return logging.getLogger(name)


def set_job_id(job_id: Optional[UUID]) -> None:
    """
    Set job_id in context for automatic injection into logs.

    Args:
        job_id: Job ID to set in context
    """
    job_id_context.set(job_id)


def get_job_id() -> Optional[UUID]:
    """
    Get current job_id from context.

    Returns:
        Current job_id or None
    """
    return job_id_context.get()
