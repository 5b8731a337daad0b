"""JSON-lines logging for the API and the generation workers."""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator
from uuid import uuid4

from flask import g, has_request_context, request

_batch_id: ContextVar[str | None] = ContextVar("qbank_batch_id", default=None)

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "request_id",
    "path",
    "method",
    "event",
}


@contextmanager
def bind_batch(batch_id: str | None) -> Iterator[None]:
    """Tag every record logged inside the block with a generation batch id.

    Worker threads do not inherit context variables, so each drafted item
    binds the id itself.
    """

    token = _batch_id.set(batch_id)
    try:
        yield
    finally:
        _batch_id.reset(token)


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.request_id = getattr(g, "request_id", "n/a")
            record.path = request.path
            record.method = request.method
        else:
            # CLI commands and generation threads run outside a request.
            record.request_id = "-"
            record.path = "-"
            record.method = "-"
        if getattr(record, "batch_id", None) is None and _batch_id.get():
            record.batch_id = _batch_id.get()
        return True


class JsonFormatter(logging.Formatter):
    def __init__(self, service: str = "qbank") -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "service": self.service,
            "event": getattr(record, "event", None) or record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        if getattr(record, "path", "-") != "-":
            payload["http"] = {"method": record.method, "path": record.path}
        fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if fields:
            payload["fields"] = fields
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(app) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter(app.config.get("SERVICE_NAME", "qbank")))
    handler.addFilter(RequestContextFilter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    # Retry chatter from urllib3 is already reported by the AI client.
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def assign_request_id() -> str:
    """Reuse the caller's X-Request-ID or mint one; it is echoed on the response."""

    request_id = request.headers.get("X-Request-ID") or uuid4().hex
    g.request_id = request_id
    return request_id
