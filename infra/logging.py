"""
EMob Centralized Logging
------------------------
Structured logging with request_id propagation.

Design:
- Every logical upstream fetch runs under a request_id
- request_id is stamped on every record emitted inside the context
- Console output through Rich, optional JSON file output
- Severity discipline: DEBUG=success, WARNING=rotated, ERROR=terminal

Usage:
    from infra.logging import get_logger, RequestContext

    logger = get_logger("api.client")

    with RequestContext() as request_id:
        logger.info("Fetching matches")
"""

import contextvars
import json
import logging
import logging.handlers
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from rich.logging import RichHandler

ROOT_LOGGER = "emob"

# Fields copied from ``extra=`` into JSON log lines
STRUCTURED_FIELDS = (
    "service", "url", "method", "params", "status", "token_tail",
    "duration_ms", "attempt", "body_snippet", "cache", "details",
)

_request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)


def generate_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return _request_id_var.get()


class RequestContext:
    """
    Context manager for request scoping.

    Usage:
        with RequestContext() as request_id:
            # All logs within this block carry request_id
            logger.info("Processing...")
    """

    def __init__(self, request_id: Optional[str] = None):
        self._request_id = request_id or generate_request_id()
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = _request_id_var.set(self._request_id)
        return self._request_id

    def __exit__(self, *args) -> None:
        if self._token is not None:
            _request_id_var.reset(self._token)


class RequestIdFilter(logging.Filter):
    """Logging filter that adds request_id to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured file logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in STRUCTURED_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, default=str)


_logging_initialized = False


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[str] = None,
    console: bool = True,
    file: bool = False,
    force: bool = False,
) -> None:
    """
    Configure the EMob logging system.

    Args:
        level: Logging level (default INFO)
        log_dir: Directory for the JSON log file (default: ./logs)
        console: Enable Rich console output
        file: Enable JSON file output
        force: Replace handlers installed by an earlier call
    """
    global _logging_initialized

    if _logging_initialized and not force:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    request_filter = RequestIdFilter()

    if console:
        console_handler = RichHandler(show_path=False, rich_tracebacks=True)
        console_handler.setLevel(level)
        console_handler.addFilter(request_filter)
        root_logger.addHandler(console_handler)

    if file:
        log_path = Path(log_dir) if log_dir else Path("logs")
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path / "emob.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)  # File gets everything
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(request_filter)
        root_logger.addHandler(file_handler)

    _logging_initialized = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger in the ``emob`` namespace."""
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
