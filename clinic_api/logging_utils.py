from __future__ import annotations

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

_request_id_ctx_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_identity_id_ctx_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "identity_id", default=None
)

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "request_id",
    "identity_id",
}


class RequestContextFilter(logging.Filter):
    """Stamp records with the current request and caller."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id_ctx_var.get()
        record.identity_id = _identity_id_ctx_var.get()
        return True


class JSONLogFormatter(logging.Formatter):
    """One JSON object per line; ``extra`` fields are emitted at top level."""

    def __init__(self, service: str | None = None) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
            "identity_id": getattr(record, "identity_id", None),
        }
        if self.service:
            entry["service"] = self.service

        entry.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RESERVED and not key.startswith("_")
        )

        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def _json_handler(logger: logging.Logger) -> logging.Handler | None:
    for handler in logger.handlers:
        if isinstance(handler.formatter, JSONLogFormatter):
            return handler
    return None


def configure_logging(level: int | str = logging.INFO, service: str | None = "clinic-api") -> None:
    """Route the root logger, and uvicorn's, through a JSON stdout handler.

    Repeated calls only adjust the level.
    """

    root = logging.getLogger()
    root.setLevel(level)
    if _json_handler(root) is not None:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONLogFormatter(service))
    handler.addFilter(RequestContextFilter())
    root.handlers = [handler]

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = []
        uvicorn_logger.propagate = True


def set_identity_context(identity_id: UUID | str | None) -> None:
    """Bind the authenticated identity to the current logging context."""

    _identity_id_ctx_var.set(str(identity_id) if identity_id is not None else None)


__all__ = [
    "JSONLogFormatter",
    "RequestContextFilter",
    "configure_logging",
    "set_identity_context",
]
