from __future__ import annotations

import contextvars
import json
import logging
import os
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")
route_var: contextvars.ContextVar[str] = contextvars.ContextVar("route", default="-")

_RESERVED_ATTRS = set(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "request_id", "route", "event", "asctime"}


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()
        if not hasattr(record, "route"):
            record.route = route_var.get()
        if not hasattr(record, "event"):
            record.event = record.msg if isinstance(record.msg, str) else "log"
        return True


class EventFormatter(logging.Formatter):
    """Renders records as ``key=value`` pairs, or one JSON object per line."""

    def __init__(self, json_output: bool) -> None:
        super().__init__()
        self.json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", "log"),
            "request_id": getattr(record, "request_id", "-"),
            "route": getattr(record, "route", "-"),
        }
        message = record.getMessage()
        if message and message != payload["event"]:
            payload["message"] = message
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _RESERVED_ATTRS:
                continue
            payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        if self.json_output:
            return json.dumps(payload, default=str, ensure_ascii=False)
        return " ".join(f"{key}={value}" for key, value in payload.items())


def configure_logging() -> None:
    root = logging.getLogger()
    if getattr(root, "_lyric_cloze_configured", False):
        return

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    json_output = os.getenv("LOG_FORMAT", "text").lower() == "json"

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(EventFormatter(json_output=json_output))
    handler.addFilter(RequestContextFilter())

    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    root._lyric_cloze_configured = True  # type: ignore[attr-defined]


def bind_request(*, request_id: str, route: str) -> None:
    request_id_var.set(request_id)
    route_var.set(route)


def unbind_request() -> None:
    request_id_var.set("-")
    route_var.set("-")


def new_request_id() -> str:
    return uuid.uuid4().hex


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **fields: Any) -> None:
    logger.log(level, event, extra={"event": event, **fields})


def elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
