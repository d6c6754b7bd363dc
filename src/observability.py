"""Stream logging for the mold registry.

Records emitted while a registry operation runs are tagged with the
operation's ``mold_id`` and ``action`` (see ``operation_context``), so one
checkout or return can be followed across log lines.
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, TextIO

OPERATION_FIELDS = ("mold_id", "action")

_OPERATION: ContextVar[tuple[str, str] | None] = ContextVar("molds_operation", default=None)


@contextmanager
def operation_context(*, mold_id: str, action: str) -> Iterator[None]:
    """Tag log records with the registry operation running in this block."""
    token = _OPERATION.set((mold_id, action))
    try:
        yield
    finally:
        _OPERATION.reset(token)


def current_operation() -> dict[str, str]:
    """Return the active operation fields, empty outside an operation."""
    operation = _OPERATION.get()
    if operation is None:
        return {}
    return dict(zip(OPERATION_FIELDS, operation))


class OperationFilter(logging.Filter):
    """Copy the active operation onto each record as attributes."""

    def filter(self, record: logging.LogRecord) -> bool:
        operation = current_operation()
        for field in OPERATION_FIELDS:
            setattr(record, field, operation.get(field))
        return True


def _operation_fields(record: logging.LogRecord) -> list[tuple[str, str]]:
    fields: list[tuple[str, str]] = []
    for field in OPERATION_FIELDS:
        value = getattr(record, field, None)
        if value is not None:
            fields.append((field, value))
    return fields


class JsonFormatter(logging.Formatter):
    """One JSON object per line; operation fields only when set."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_operation_fields(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


class PlainFormatter(logging.Formatter):
    """Single-line text with ``mold_id=... action=...`` appended."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        tags = " ".join(f"{field}={value}" for field, value in _operation_fields(record))
        if not tags:
            return message
        return f"{message} {tags}"


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Install a single root stream handler (stdout unless ``stream`` is given).

    Calling it again replaces the previous handler.
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level.upper())

    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setLevel(level.upper())
    handler.addFilter(OperationFilter())
    handler.setFormatter(JsonFormatter() if json_output else PlainFormatter())

    root.addHandler(handler)
