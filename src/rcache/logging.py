"""
Structured logging for the request cache.

Provides:
- Context variables for namespace, operation and cache key (using contextvars)
- JSONFormatter for machine-readable logs to file
- RichHandler for pretty console output
- ContextLogger wrapper that attaches context to all log calls
- setup_logging() that configures both file and console handlers
- Context manager log_context() for scoped context
- get_logger() factory
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

# Context variables for structured logging
_namespace_var: ContextVar[str | None] = ContextVar("namespace", default=None)
_operation_var: ContextVar[str | None] = ContextVar("operation", default=None)
_cache_key_var: ContextVar[str | None] = ContextVar("cache_key", default=None)


def get_namespace() -> str | None:
    """Get the current cache namespace from context."""
    return _namespace_var.get()


def get_operation() -> str | None:
    """Get the current cache operation from context."""
    return _operation_var.get()


def get_cache_key() -> str | None:
    """Get the canonical key being processed from context."""
    return _cache_key_var.get()


@contextmanager
def log_context(
    namespace: str | None = None,
    operation: str | None = None,
    cache_key: str | None = None,
) -> Generator[None, None, None]:
    """Context manager for scoped logging context.

    Args:
        namespace: Cache namespace (adapter label) to set in context.
        operation: Operation name (get, set, remove, evict) to set in context.
        cache_key: Canonical key to set in context.

    Yields:
        None. Context variables are set for the duration of the context.
    """
    old_namespace = _namespace_var.get()
    old_operation = _operation_var.get()
    old_cache_key = _cache_key_var.get()

    try:
        if namespace is not None:
            _namespace_var.set(namespace)
        if operation is not None:
            _operation_var.set(operation)
        if cache_key is not None:
            _cache_key_var.set(cache_key)
        yield
    finally:
        _namespace_var.set(old_namespace)
        _operation_var.set(old_operation)
        _cache_key_var.set(old_cache_key)


def _context_fields() -> dict[str, str]:
    fields: dict[str, str] = {}
    namespace = get_namespace()
    operation = get_operation()
    cache_key = get_cache_key()
    if namespace:
        fields["namespace"] = namespace
    if operation:
        fields["operation"] = operation
    if cache_key:
        fields["cache_key"] = cache_key
    return fields


class JSONFormatter(logging.Formatter):
    """JSON formatter for machine-readable log files.

    Produces JSON Lines format with structured context.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_obj.update(_context_fields())

        if hasattr(record, "extra"):
            log_obj["extra"] = record.extra

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


class ContextRichHandler(RichHandler):
    """Rich handler that includes cache context in console output."""

    def get_level_text(self, record: logging.LogRecord) -> Text:
        """Override to add context prefix."""
        level_text = super().get_level_text(record)

        parts: list[str] = []
        namespace = get_namespace()
        operation = get_operation()

        if namespace:
            parts.append(f"[dim]{namespace}[/dim]")
        if operation:
            parts.append(f"[cyan]{operation}[/cyan]")

        if parts:
            prefix = " ".join(parts)
            return Text.from_markup(f"{level_text} {prefix}")

        return level_text


class ContextLogger:
    """Logger wrapper that automatically attaches context to log calls.

    Wraps a standard logger and adds context variables to all log calls.
    Keyword arguments other than the logging module's own become
    structured fields.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        """Get the logger name."""
        return self._logger.name

    def isEnabledFor(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def log(self, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log at an explicit level."""
        self._log(level, msg, *args, **kwargs)

    def _log(
        self,
        level: int,
        msg: str,
        *args: Any,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        """Internal logging method that adds context."""
        extra = kwargs.pop("extra", {})
        extra.update(_context_fields())

        for key in list(kwargs.keys()):
            if key not in ("exc_info", "stack_info", "stacklevel"):
                extra[key] = kwargs.pop(key)

        self._logger.log(level, msg, *args, exc_info=exc_info, extra={"extra": extra})

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, exc_info: bool = False, **kwargs: Any) -> None:
        """Log error message."""
        self._log(logging.ERROR, msg, *args, exc_info=exc_info, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._log(logging.ERROR, msg, *args, exc_info=True, **kwargs)


# Global console for rich output
_console: Console | None = None
_setup_done: bool = False


def get_console() -> Console:
    """Get the global rich console."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def setup_logging(
    log_level: str = "INFO",
    log_file: Path | None = None,
    console_output: bool = True,
) -> None:
    """Set up logging with JSON file handler and rich console handler.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to log file. If None, only console logging is enabled.
        console_output: Whether to enable console output.
    """
    global _setup_done

    root_logger = logging.getLogger("rcache")
    root_logger.setLevel(getattr(logging, log_level.upper()))

    root_logger.handlers.clear()

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(logging.DEBUG)  # Log everything to file
        root_logger.addHandler(file_handler)

    if console_output:
        rich_handler = ContextRichHandler(
            console=get_console(),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            markup=False,
        )
        rich_handler.setLevel(getattr(logging, log_level.upper()))
        root_logger.addHandler(rich_handler)

    # Prevent propagation to root logger
    root_logger.propagate = False

    for noisy_logger in ["httpx", "httpcore"]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    _setup_done = True


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger.

    Args:
        name: Logger name (usually __name__).

    Returns:
        ContextLogger wrapper around the standard logger.
    """
    global _setup_done

    if not _setup_done:
        setup_logging()

    if not name.startswith("rcache"):
        name = f"rcache.{name}"

    return ContextLogger(logging.getLogger(name))
