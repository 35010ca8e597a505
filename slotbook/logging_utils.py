from __future__ import annotations

import contextvars
import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import UUID

_request_id_ctx_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_tenant_id_ctx_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "tenant_id", default=None
)

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "request_id", "tenant_id"}


class RequestContextFilter(logging.Filter):
    """Inject request and tenant identifiers into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id_ctx_var.get()
        record.tenant_id = _tenant_id_ctx_var.get()
        return True


class JSONLogFormatter(logging.Formatter):
    """Serialize log records as single-line JSON documents."""

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": record.__dict__.get("request_id"),
            "tenant_id": record.__dict__.get("tenant_id"),
        }
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _RESERVED_ATTRIBUTES:
                continue
            log_entry[key] = value

        if record.exc_info:
            log_entry["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


_configured = False


def configure_logging(level: int = logging.INFO) -> None:
    """Configure the root logger for structured JSON output."""

    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONLogFormatter())
    handler.addFilter(RequestContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers = []
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access", "celery"):
        logger = logging.getLogger(logger_name)
        logger.handlers = []
        logger.propagate = True

    _configured = True


def set_tenant_context(tenant_id: UUID | str | None) -> None:
    """Bind the tenant identifier to the current logging context."""

    _tenant_id_ctx_var.set(str(tenant_id) if tenant_id is not None else None)


@contextmanager
def tenant_log_context(tenant_id: UUID | str) -> Iterator[None]:
    """Temporarily bind a tenant id, restoring the previous one on exit."""

    token = _tenant_id_ctx_var.set(str(tenant_id))
    try:
        yield
    finally:
        _tenant_id_ctx_var.reset(token)


def get_current_tenant() -> str:
    """Return the tenant id bound to the current context."""

    return _tenant_id_ctx_var.get() or "anonymous"


def get_request_id() -> str:
    """Return the request id bound to the current context."""

    return _request_id_ctx_var.get() or "unknown"


__all__ = [
    "configure_logging",
    "get_current_tenant",
    "get_request_id",
    "set_tenant_context",
    "tenant_log_context",
    "_request_id_ctx_var",
    "_tenant_id_ctx_var",
]
