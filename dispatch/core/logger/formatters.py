"""
Formatters: JSON lines for the rotating file, plain text for the console.

Both understand the dispatch context fields passed with ``extra=`` (order,
assignment, driver, navigation session ...), so a single order can be followed
through accept, sweep and navigation records.
"""
from __future__ import annotations

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

CONTEXT_FIELDS: tuple[str, ...] = (
    "order_id",
    "assignment_id",
    "restaurant_id",
    "delivery_user_id",
    "session_id",
    "route_id",
)


def record_context(record: logging.LogRecord, fields: Sequence[str] = CONTEXT_FIELDS) -> dict[str, Any]:
    return {name: getattr(record, name) for name in fields if getattr(record, name, None) is not None}


class JsonFormatter(logging.Formatter):
    """One JSON object per line; context fields are grouped under ``context``."""

    def __init__(self, *, context_fields: Sequence[str] = CONTEXT_FIELDS) -> None:
        super().__init__()
        self.context_fields = tuple(context_fields)

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.lineno}",
        }
        context = record_context(record, self.context_fields)
        if context:
            out["context"] = context
        if record.exc_info:
            out["exception"] = "".join(traceback.format_exception(*record.exc_info)).rstrip()
        return json.dumps(out, default=str, ensure_ascii=False)


class PlainConsoleFormatter(logging.Formatter):
    """``time | LEVEL | logger | message [order_id=... session_id=...]``"""

    default_fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = "%Y-%m-%d %H:%M:%S") -> None:
        super().__init__(fmt=fmt or self.default_fmt, datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if not context:
            return line
        tags = " ".join(f"{k}={v}" for k, v in context.items())
        head, sep, tail = line.partition("\n")
        return f"{head} [{tags}]{sep}{tail}"
