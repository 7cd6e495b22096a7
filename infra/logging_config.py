"""Logging setup for parquet-studio.

Engine code logs through :class:`StructuredLogger`, which emits one event
name per record plus keyword fields. Handlers render records either as
``key=value`` text or as one JSON object per line (``STUDIO_LOG_JSON=1``).
The file being edited is attached to every record through the session
context.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import Mapping
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from infra.config import get_settings

# Path and generation of the open table; maintained by the session service
session_ctx: ContextVar[dict[str, Any] | None] = ContextVar("session_ctx", default=None)


def set_session_context(**kwargs: Any) -> None:
    """Merge values into the context attached to subsequent records."""
    current = dict(session_ctx.get() or {})
    current.update(kwargs)
    session_ctx.set(current)


def clear_session_context() -> None:
    session_ctx.set({})


def get_session_context() -> dict[str, Any]:
    return dict(session_ctx.get() or {})


def _utc_iso8601() -> str:
    # 2026-01-24T18:03:12.123Z
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


_STANDARD_RECORD_ATTRS = frozenset({
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module",
    "exc_info", "exc_text", "stack_info", "lineno", "funcName", "created", "msecs",
    "relativeCreated", "thread", "threadName", "processName", "process", "taskName",
})


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record.

    Core keys (timestamp, level, logger, message, ...) win over event fields,
    event fields win over session context and ``extra_fields``.
    """

    def __init__(self, *, extra_fields: Mapping[str, Any] | None = None) -> None:
        super().__init__()
        self._extra_fields = dict(extra_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _utc_iso8601(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "func": record.funcName,
            "line": record.lineno,
        }
        for key, value in self._extract_extras(record).items():
            payload.setdefault(key, value)
        for key, value in get_session_context().items():
            payload.setdefault(key, value)
        for key, value in self._extra_fields.items():
            payload.setdefault(key, value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)

    @staticmethod
    def _extract_extras(record: logging.LogRecord) -> dict[str, Any]:
        extras: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in _STANDARD_RECORD_ATTRS:
                continue
            if key == "fields" and isinstance(value, Mapping):
                extras.update(value)
            else:
                extras[key] = value
        return extras


class TextFormatter(logging.Formatter):
    """``time | LEVEL | logger | event | k=v ...`` with UTC timestamps."""

    converter = time.gmtime

    def __init__(self) -> None:
        super().__init__("%(asctime)sZ | %(levelname)s | %(name)s | %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = getattr(record, "fields", None)
        if fields:
            line += " | " + " ".join(f"{k}={v}" for k, v in fields.items())
        return line


class StructuredLogger:
    """
    Event-style wrapper over :mod:`logging`.

        logger = StructuredLogger(__name__)
        logger.info("table_loaded", rows=1200, columns=8)

    ``level`` and ``event`` are positional-only, so any keyword is a field,
    including names such as ``level``, ``event`` or ``exc_info``.
    """

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)

    def _emit(self, level: int, event: str, fields: dict[str, Any], exc_info: bool) -> None:
        if not self._logger.isEnabledFor(level):
            return
        # All fields travel in one attribute so they never clash with LogRecord's own
        self._logger.log(level, event, extra={"event": event, "fields": fields}, exc_info=exc_info)

    def _log(self, level: int, event: str, /, **fields: Any) -> None:
        self._emit(level, event, fields, False)

    def debug(self, event: str, /, **fields: Any) -> None:
        self._log(logging.DEBUG, event, **fields)

    def info(self, event: str, /, **fields: Any) -> None:
        self._log(logging.INFO, event, **fields)

    def warning(self, event: str, /, **fields: Any) -> None:
        self._log(logging.WARNING, event, **fields)

    def error(self, event: str, /, **fields: Any) -> None:
        self._log(logging.ERROR, event, **fields)

    def exception(self, event: str, /, **fields: Any) -> None:
        """ERROR with the active exception attached."""
        self._emit(logging.ERROR, event, fields, True)


def setup_logging(
    *,
    level: str | None = None,
    json_logs: bool | None = None,
    override_root_handlers: bool | None = None,
    extra_fields: Mapping[str, Any] | None = None,
) -> None:
    """
    Configure the root logger from arguments, falling back to settings
    (``STUDIO_LOG_LEVEL``, ``STUDIO_LOG_JSON``, ``STUDIO_LOG_OVERRIDE``).

    Without override, a root logger that already has handlers is left alone.
    Records go to stderr; stdout is reserved for command output.
    """
    config = get_settings(reload=True).logging
    level_name = (level or config.level).upper()
    use_json = json_logs if json_logs is not None else bool(config.json_logs)
    override = override_root_handlers if override_root_handlers is not None else bool(config.override_root_handlers)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter(extra_fields=extra_fields) if use_json else TextFormatter())

    if override:
        for h in list(root.handlers):
            root.removeHandler(h)
        root.addHandler(handler)
    elif not root.handlers:
        root.addHandler(handler)

    # openpyxl warns about every workbook feature it does not model
    logging.getLogger("openpyxl").setLevel(logging.WARNING)
