"""
Process-wide logging setup.

One stream handler on the root logger, JSON lines unless ``LOG_JSON`` is off.
Structured context travels through ``extra=``; only the keys listed in
``CONTEXT_FIELDS`` reach the output.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_ip",
    "step",
    "provider",
    "service",
)
PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
HANDLER_NAME = "apicore-root"


class JsonFormatter(logging.Formatter):
    def __init__(self, *, static_fields: dict[str, Any] | None = None) -> None:
        super().__init__()
        self.static_fields = dict(static_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(self.static_fields)
        entry.update(
            {name: getattr(record, name) for name in CONTEXT_FIELDS if getattr(record, name, None) is not None}
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _installed_handler(root: logging.Logger) -> logging.Handler | None:
    for handler in root.handlers:
        if handler.get_name() == HANDLER_NAME:
            return handler
    return None


def configure_logging(*, level: str = "INFO", json_logs: bool = True, environment: str | None = None) -> None:
    """Install the apicore handler once; later calls only adjust level and format."""
    root = logging.getLogger()
    handler = _installed_handler(root)
    if handler is None:
        root.handlers.clear()
        handler = logging.StreamHandler()
        handler.set_name(HANDLER_NAME)
        root.addHandler(handler)

    if json_logs:
        handler.setFormatter(JsonFormatter(static_fields={"environment": environment} if environment else None))
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    root.setLevel(level.upper())
