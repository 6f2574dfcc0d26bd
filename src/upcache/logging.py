"""
Structured logging for upload staging.

Provides:
- Context variables for the staging identifier and operation being run
- log_context() to scope them around a cache, retrieve or reap call
- JSONFormatter for JSON-lines log files (enabled by UPCACHE_LOG_FILE)
- ContextRichHandler for console output prefixed with the context
- ContextLogger wrapper that records keyword arguments as ``fields``
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

ROOT_LOGGER_NAME = "upcache"

_staging_id_var: ContextVar[str | None] = ContextVar("staging_id", default=None)
_operation_var: ContextVar[str | None] = ContextVar("operation", default=None)


def get_staging_id() -> str | None:
    """Get the staging identifier currently being worked on."""
    return _staging_id_var.get()


def get_operation() -> str | None:
    """Get the operation (cache, retrieve, reap) currently running."""
    return _operation_var.get()


def current_context() -> dict[str, str]:
    """Return the non-empty context variables as a dict."""
    context: dict[str, str] = {}
    staging_id = get_staging_id()
    operation = get_operation()
    if staging_id:
        context["staging_id"] = staging_id
    if operation:
        context["operation"] = operation
    return context


@contextmanager
def log_context(
    staging_id: str | None = None,
    operation: str | None = None,
) -> Generator[None, None, None]:
    """Scope a staging identifier and/or operation name.

    Values left as None keep whatever the enclosing context set.
    """
    staging_token = _staging_id_var.set(staging_id) if staging_id is not None else None
    operation_token = _operation_var.set(operation) if operation is not None else None
    try:
        yield
    finally:
        if operation_token is not None:
            _operation_var.reset(operation_token)
        if staging_token is not None:
            _staging_id_var.reset(staging_token)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with staging context and call site."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "source": f"{record.module}:{record.lineno}",
            "message": record.getMessage(),
        }
        log_obj.update(current_context())

        fields = getattr(record, "fields", None)
        if fields:
            log_obj["fields"] = fields

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


class ContextRichHandler(RichHandler):
    """Rich handler that prefixes the level with operation and identifier."""

    def get_level_text(self, record: logging.LogRecord) -> Text:
        level_text = super().get_level_text(record)

        context = current_context()
        parts: list[str] = []
        if "operation" in context:
            parts.append(f"[cyan]{context['operation']}[/cyan]")
        if "staging_id" in context:
            parts.append(f"[dim]{context['staging_id']}[/dim]")

        if not parts:
            return level_text
        return Text.from_markup(f"{level_text} {' '.join(parts)}")


class ContextLogger:
    """Logger wrapper used throughout upcache.

    Keyword arguments become structured fields on the record, e.g.
    ``logger.info("Staged %s", name, path=str(target))``.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _log(self, level: int, msg: str, *args: Any, **fields: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        # stacklevel 3 skips _log and the level method to reach the caller
        self._logger.log(
            level, msg, *args, extra={"fields": fields}, stacklevel=3
        )

    def debug(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, *args, **fields)

    def info(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.INFO, msg, *args, **fields)

    def warning(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.WARNING, msg, *args, **fields)


_setup_done: bool = False


def setup_logging(
    log_level: str = "INFO",
    log_file: Path | None = None,
    console_output: bool = True,
) -> None:
    """Configure the ``upcache`` logger.

    Args:
        log_level: Level for the console handler and the logger itself.
        log_file: If given, also append JSON lines here at DEBUG level.
        console_output: Whether to log to stderr through rich.
    """
    global _setup_done

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    level = getattr(logging, log_level.upper())

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)
        # The file gets everything, so the logger must let DEBUG through
        root_logger.setLevel(logging.DEBUG)
    else:
        root_logger.setLevel(level)

    if console_output:
        rich_handler = ContextRichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            markup=True,
        )
        rich_handler.setLevel(level)
        root_logger.addHandler(rich_handler)

    root_logger.propagate = False
    _setup_done = True


def get_logger(name: str) -> ContextLogger:
    """Get a ContextLogger under the ``upcache`` namespace."""
    if not _setup_done:
        setup_logging()

    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"

    return ContextLogger(logging.getLogger(name))
