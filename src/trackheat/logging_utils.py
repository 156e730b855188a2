"""Logging helpers for the trackheat CLI and render pipeline.

Records emitted while an activity is being processed carry an ``activity``
attribute, set either through ``extra=`` or by ``activity_context``.
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

_CURRENT_ACTIVITY: ContextVar[str | None] = ContextVar("trackheat_activity", default=None)

# Attributes every LogRecord has; anything else came from ``extra=``.
_RECORD_FIELDS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


@dataclass(frozen=True)
class LogOptions:
    """Configuration for logging output."""

    verbose: int = 0
    quiet: bool = False
    log_file: Path | None = None
    json_console: bool = False


@contextmanager
def activity_context(name: str) -> Iterator[None]:
    """Tag every record logged inside the block with ``activity=name``."""
    token = _CURRENT_ACTIVITY.set(name)
    try:
        yield
    finally:
        _CURRENT_ACTIVITY.reset(token)


class ActivityFilter(logging.Filter):
    """Copy the current activity onto records that do not name one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "activity", None) is None:
            activity = _CURRENT_ACTIVITY.get()
            if activity is not None:
                record.activity = activity
        return True


def _timestamp(created: float) -> str:
    return (
        datetime.fromtimestamp(created, tz=timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class JsonFormatter(logging.Formatter):
    """Format log records as JSON objects (one per line)."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _timestamp(record.created),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        extra = {
            key: value for key, value in record.__dict__.items() if key not in _RECORD_FIELDS
        }
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class HumanFormatter(logging.Formatter):
    """Format log records with a concise, human readable prefix."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        activity = getattr(record, "activity", None)
        if activity:
            return f"[{activity}] {message}"
        return message


def _console_level(options: LogOptions) -> int:
    if options.quiet:
        return logging.WARNING
    if options.verbose > 0:
        return logging.DEBUG
    return logging.INFO


def configure_logging(options: LogOptions) -> logging.Logger:
    """Configure logging based on LogOptions and return the root logger.

    ``-v`` enables debug output; ``-vv`` also shows the logger name.
    The optional log file always receives debug records as JSON lines.
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG)
    activity_filter = ActivityFilter()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(_console_level(options))
    if options.json_console:
        console_handler.setFormatter(JsonFormatter())
    elif options.verbose > 1:
        console_handler.setFormatter(HumanFormatter("%(levelname)s %(name)s: %(message)s"))
    else:
        console_handler.setFormatter(HumanFormatter("%(levelname)s: %(message)s"))
    console_handler.addFilter(activity_filter)
    root.addHandler(console_handler)

    if options.log_file:
        options.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(options.log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JsonFormatter())
        file_handler.addFilter(activity_filter)
        root.addHandler(file_handler)

    return root
