"""Structured logging helpers shared by the API and the entry store."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

__all__ = ["configure_logging", "get_logger", "StructuredFormatter"]

ROOT_LOGGER_NAME = "threadbaire"

# Attributes present on every LogRecord; anything else arrived through `extra=`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime"}


class StructuredFormatter(logging.Formatter):
    """Render the event name plus any `extra` fields on a single line."""

    def __init__(self, *, json_lines: bool = False) -> None:
        super().__init__()
        self._json_lines = json_lines

    def format(self, record: logging.LogRecord) -> str:
        fields = _extract_extra(record)
        if self._json_lines:
            payload: Dict[str, Any] = {
                "timestamp": datetime.fromtimestamp(
                    record.created, tz=timezone.utc
                ).isoformat(),
                "level": record.levelname.lower(),
                "logger": record.name,
                "event": record.getMessage(),
                **fields,
            }
            if record.exc_info:
                payload["exc_info"] = self.formatException(record.exc_info)
            return json.dumps(payload, default=str)

        parts = [
            f"{record.levelname:<8}",
            record.name,
            record.getMessage(),
        ]
        parts.extend(f"{key}={value!r}" for key, value in fields.items())
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; events are passed as the message with `extra`."""

    return logging.getLogger(name)


def configure_logging(level: str | int = "INFO", *, json_lines: bool = False) -> None:
    """Install a single stream handler on the application loggers.

    Safe to call more than once: the previous handler is replaced rather than
    stacked.
    """

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter(json_lines=json_lines))
    handler.set_name("threadbaire-structured")
    for name in (ROOT_LOGGER_NAME, "backend"):
        target = logging.getLogger(name)
        for existing in list(target.handlers):
            if existing.get_name() == handler.get_name():
                target.removeHandler(existing)
        target.addHandler(handler)
        target.setLevel(_coerce_level(level))
        target.propagate = False


def _coerce_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


def _extract_extra(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }
