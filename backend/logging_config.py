"""Structured logging for BarkBase Ops.

Request-scoped fields (request id, signed-in admin) live in a context variable
bound by the HTTP middleware and the auth dependency, so every record emitted
while serving a request carries them without passing ``extra=`` around.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar, Token
from typing import Any

from backend.utils.time import utc_now

# Fields copied onto log output when present, in this order.
CONTEXT_KEYS = ("request_id", "admin_email", "method", "path", "status_code", "duration_ms")

_request_context: ContextVar[dict[str, Any]] = ContextVar("barkbase_ops_request_context", default={})


def start_request_context(**values: Any) -> Token:
    """Replace the context at the start of a request; returns a reset token."""
    return _request_context.set(dict(values))


def bind_request_context(**values: Any) -> Token:
    """Merge ``values`` into the current request context; returns a reset token."""
    return _request_context.set({**_request_context.get(), **values})


def reset_request_context(token: Token) -> None:
    _request_context.reset(token)


def current_request_context() -> dict[str, Any]:
    return dict(_request_context.get())


class RequestContextFilter(logging.Filter):
    """Copies the bound request context onto records that don't set the key themselves."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _request_context.get().items():
            if getattr(record, key, None) is None:
                setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):
    """JSON lines for production; ``[LEVEL] time logger message key=value`` for dev."""

    def __init__(self, as_json: bool = False) -> None:
        super().__init__()
        self.as_json = as_json

    def _fields(self, record: logging.LogRecord) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "timestamp": utc_now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        fields.update(
            (key, getattr(record, key)) for key in CONTEXT_KEYS if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[1]:
            fields["exception"] = self.formatException(record.exc_info)
        return fields

    def format(self, record: logging.LogRecord) -> str:
        fields = self._fields(record)
        if self.as_json:
            fields.update(module=record.module, function=record.funcName, line=record.lineno)
            return json.dumps(fields, default=str)

        line = f"[{fields['level']:<7}] {fields['timestamp']} {fields['logger']}: {fields['message']}"
        context = " ".join(f"{key}={fields[key]}" for key in CONTEXT_KEYS if key in fields)
        if context:
            line = f"{line} | {context}"
        if "exception" in fields:
            line = f"{line}\n{fields['exception']}"
        return line


def setup_logging(level: str = "INFO", as_json: bool = False) -> None:
    """Install one stdout handler on the root logger; later calls are no-ops."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(JSONFormatter(as_json=as_json))
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # SQL is covered by the slow-query warnings; access lines by our middleware.
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
