"""
Structured logging for the Report Studio backend.

Two kinds of records are emitted:

* request records from ``ObservabilityMiddleware`` (``request_started``,
  ``request_completed`` ...), and
* domain events from the services through ``log_event`` (``period_locked``,
  ``rollover_completed``, ``reminder_sent`` ...).

Both carry the request context bound by the middleware (request id, acting
user, path) so an event can be traced back to the API call that caused it.
Output is one JSON object per line unless ``LOG_FORMAT=console`` or debug
mode asks for the readable console format.

Usage:
    from reportstudio.logging_config import get_logger, log_event

    logger = get_logger(__name__)
    log_event("period_locked", period_id=period_id, locked_by=user_id)
"""

from __future__ import annotations

import functools
import json
import logging
import os
import sys
import time
import traceback
from collections.abc import Callable
from contextvars import ContextVar, Token
from datetime import date, datetime, timezone
from typing import Any

from reportstudio.config import settings

SERVICE_NAME = "esg-report-studio"
EVENT_LOGGER = "reportstudio.events"

# Attributes owned by logging.LogRecord; extra fields must not overwrite them.
_RESERVED_ATTRS = frozenset(
    {
        "name", "msg", "args", "levelname", "levelno", "pathname",
        "filename", "module", "lineno", "funcName", "created", "msecs",
        "relativeCreated", "thread", "threadName", "processName",
        "process", "getMessage", "exc_info", "exc_text", "stack_info",
        "message", "asctime", "taskName",
    }
)

# ContextVars are copied into the threadpool that runs the sync route handlers.
_request_context: ContextVar[dict[str, Any]] = ContextVar("log_request_context", default={})


def bind_request_context(**fields: Any) -> Token:
    """Attach fields (request_id, user_id, path ...) to every record logged in this context."""
    merged = {**_request_context.get(), **{k: v for k, v in fields.items() if v is not None}}
    return _request_context.set(merged)


def reset_request_context(token: Token) -> None:
    _request_context.reset(token)


def current_request_context() -> dict[str, Any]:
    return dict(_request_context.get())


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS and not k.startswith("_")}


def _json_default(obj: Any) -> str:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


class JsonFormatter(logging.Formatter):
    def __init__(self, *, service_name: str = SERVICE_NAME) -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }
        entry.update(_request_context.get())
        entry.update(_extra_fields(record))

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }
        return json.dumps(entry, default=_json_default, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """``LEVEL HH:MM:SS.mmm [request-id] logger: message key=value ...`` for local runs."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        request_id = _request_context.get().get("request_id", "-")
        line = f"{color}{record.levelname:<8}{self.RESET} {stamp} [{request_id}] {record.name}: {record.getMessage()}"

        extras = _extra_fields(record)
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in extras.items())
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return line


def _resolve_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    return getattr(logging, name, logging.INFO)


def _use_json(log_format: str | None) -> bool:
    choice = (log_format or os.environ.get("LOG_FORMAT") or "").lower()
    if choice in ("json", "console"):
        return choice == "json"
    return not settings.debug_mode


_configured = False


def configure_logging(*, level: str | int | None = None, log_format: str | None = None) -> None:
    """
    Install a single stdout handler on the root logger.

    Args:
        level: Level name or number; defaults to ``LOG_LEVEL`` or INFO.
        log_format: ``"json"`` or ``"console"``; defaults to ``LOG_FORMAT``,
            then JSON unless debug mode is on.
    """
    global _configured

    resolved = _resolve_level(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if _use_json(log_format) else ConsoleFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(resolved)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    if not _configured:
        configure_logging()
    return logging.getLogger(name)


def _safe_extra(fields: dict[str, Any]) -> dict[str, Any]:
    return {(f"field_{k}" if k in _RESERVED_ATTRS else k): v for k, v in fields.items()}


def log_event(event_name: str, level: str = "INFO", **fields: Any) -> None:
    """
    Log a named domain event with its fields as structured attributes.

    Example:
        log_event("audit_chain_invalid", level="WARNING", entry_id=entry_id)
    """
    logger = get_logger(EVENT_LOGGER)
    logger.log(_resolve_level(level), event_name, extra={"event": event_name, **_safe_extra(fields)})


def log_execution(logger_name: str | None = None) -> Callable:
    """
    Time a long-running service operation (rollover, reminder sweep).

    Logs ``<name>_completed`` with ``duration_ms`` on success and
    ``<name>_failed`` with the error type on failure; the error is re-raised.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(logger_name or func.__module__)
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                logger.warning(
                    f"{func.__name__}_failed",
                    extra={
                        "operation": func.__qualname__,
                        "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                        "error_type": type(exc).__name__,
                        "error_message": str(exc),
                    },
                )
                raise
            logger.info(
                f"{func.__name__}_completed",
                extra={"operation": func.__qualname__, "duration_ms": round((time.perf_counter() - start) * 1000, 2)},
            )
            return result

        return wrapper

    return decorator
