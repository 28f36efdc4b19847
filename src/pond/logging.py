"""
Structured logging for the pond cache.

The library only emits records: the ``pond`` logger carries a NullHandler,
so nothing is printed unless the host application configures logging or
calls ``setup_logging()`` (the CLI does).

Provides:
- Context variables for the cache location and operation (using contextvars)
- JSONFormatter for machine-readable logs to file
- ContextRichHandler for console output prefixed with the current context
- ContextLogger, which takes structured fields as keyword arguments
- setup_logging() and get_logger()
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

ROOT_LOGGER_NAME = "pond"

_location_var: ContextVar[str | None] = ContextVar("location", default=None)
_operation_var: ContextVar[str | None] = ContextVar("operation", default=None)

logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())


def get_location() -> str | None:
    """Get the current cache location from context."""
    return _location_var.get()


def get_operation() -> str | None:
    """Get the current cache operation from context."""
    return _operation_var.get()


def current_context() -> dict[str, str]:
    """Context values that are set, keyed by name."""
    values = {"location": get_location(), "operation": get_operation()}
    return {key: value for key, value in values.items() if value}


@contextmanager
def log_context(
    location: str | None = None,
    operation: str | None = None,
) -> Generator[None, None, None]:
    """Set the cache location and operation for records logged inside.

    Values left as None keep whatever an enclosing context set.
    """
    tokens = [
        (var, var.set(value))
        for var, value in ((_location_var, location), (_operation_var, operation))
        if value is not None
    ]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with context and keyword fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **current_context(),
        }

        fields = getattr(record, "fields", None)
        if fields:
            payload["fields"] = fields

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class ContextRichHandler(RichHandler):
    """Rich handler that prefixes the level with the cache file and operation."""

    def get_level_text(self, record: logging.LogRecord) -> Text:
        level_text = super().get_level_text(record)
        context = current_context()

        parts: list[str] = []
        if "location" in context:
            parts.append(f"[dim]{Path(context['location']).name}[/dim]")
        if "operation" in context:
            parts.append(f"[cyan]{context['operation']}[/cyan]")

        if not parts:
            return level_text
        return Text.from_markup(f"{level_text} {' '.join(parts)}")


class ContextLogger:
    """Logger wrapper that takes structured fields as keyword arguments.

    Example:
        >>> logger.debug("Stored cache entry", identifier="42", expires="...")
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(
        self,
        level: int,
        msg: str,
        *args: Any,
        exc_info: bool = False,
        **fields: Any,
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(level, msg, *args, exc_info=exc_info, extra={"fields": fields})

    def debug(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, *args, **fields)

    def info(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.INFO, msg, *args, **fields)

    def warning(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.WARNING, msg, *args, **fields)

    def error(self, msg: str, *args: Any, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.ERROR, msg, *args, exc_info=exc_info, **fields)


_console: Console | None = None


def get_console() -> Console:
    """Get the shared stderr console used for log output."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def _file_handler(log_file: Path) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    handler.setFormatter(JSONFormatter())
    handler.setLevel(logging.DEBUG)
    return handler


def _console_handler(level: int) -> logging.Handler:
    handler = ContextRichHandler(
        console=get_console(),
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setLevel(level)
    return handler


def setup_logging(
    log_level: str = "WARNING",
    log_file: Path | None = None,
    console_output: bool = True,
) -> None:
    """Route ``pond`` records to a JSON Lines file and/or the rich console.

    Meant for applications and the CLI; the library never calls it.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: JSON Lines log file. If None, no file is written.
        console_output: Whether to log to stderr through rich.
    """
    level = getattr(logging, log_level.upper())
    pond_logger = logging.getLogger(ROOT_LOGGER_NAME)
    pond_logger.setLevel(level)
    pond_logger.handlers.clear()

    if log_file:
        pond_logger.addHandler(_file_handler(log_file))
    if console_output:
        pond_logger.addHandler(_console_handler(level))
    if not pond_logger.handlers:
        pond_logger.addHandler(logging.NullHandler())

    pond_logger.propagate = False


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger under the ``pond`` namespace."""
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return ContextLogger(logging.getLogger(name))
