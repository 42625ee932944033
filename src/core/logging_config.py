"""Logging setup for the CRM API, the CLI and the async client.

Every record written through handlers installed by ``setup_logging`` carries
the current request id and user id. The API binds a ``RequestContext`` per
HTTP request; outside a request both fields render as ``-`` in text logs and
are omitted from JSON logs.
"""
from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


TEXT_LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(request_id)s user=%(user_id)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
REQUEST_ID_HEADER = "X-Request-ID"

# Entity fields a record may carry via ``extra`` or a ContextLogger.
ENTITY_FIELDS = ("entity_type", "entity_id")

QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "openai", "anthropic", "uvicorn.access")


# =============================================================================
# Request context
# =============================================================================


@dataclass
class RequestContext:
    """Who is being served. Mutable so auth can fill in the user after binding."""

    request_id: str
    user_id: Optional[int] = None


_current: ContextVar[Optional[RequestContext]] = ContextVar("request_context", default=None)


def new_request_id() -> str:
    return uuid.uuid4().hex[:16]


def bind_request_context(request_id: Optional[str] = None) -> Token:
    """Start a context for one request; pass the returned token to ``reset_request_context``."""
    return _current.set(RequestContext(request_id=request_id or new_request_id()))


def reset_request_context(token: Token) -> None:
    _current.reset(token)


def current_request_context() -> Optional[RequestContext]:
    return _current.get()


def set_request_user(user_id: int) -> None:
    """Attach the authenticated user to the current request, if one is bound."""
    # Sync dependencies run in a worker thread with a copied context; the
    # shared RequestContext object is what makes the user visible afterwards.
    context = _current.get()
    if context is not None:
        context.user_id = user_id


class RequestContextFilter(logging.Filter):
    """Copies the bound request id and user id onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _current.get()
        if not hasattr(record, "request_id"):
            record.request_id = context.request_id if context else "-"
        if not hasattr(record, "user_id"):
            record.user_id = context.user_id if context and context.user_id is not None else "-"
        return True


# =============================================================================
# Formatting
# =============================================================================


class JSONFormatter(logging.Formatter):
    """One JSON object per line; ``extra_data`` lands under ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": record.lineno,
        }

        for field in ("request_id", "user_id"):
            value = getattr(record, field, "-")
            if value not in ("-", None):
                log_data[field] = value
        for field in ENTITY_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that stamps fixed fields, e.g. the entity being moved.

    Fields passed per call through ``extra`` are merged over the fixed ones.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple[str, Dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def _handler(handler: logging.Handler, json_format: bool) -> logging.Handler:
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(TEXT_LOG_FORMAT, DATE_FORMAT))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    json_format: bool = False,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file, written alongside stdout.
        json_format: If True, use JSON lines instead of text.
    """
    handlers = [_handler(logging.StreamHandler(sys.stdout), json_format)]
    if log_file:
        handlers.append(_handler(logging.FileHandler(log_file), json_format))

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_context_logger(name: str, **context: Any) -> ContextLogger:
    """
    Logger whose records all carry ``context``.

    Example:
        log = get_context_logger(__name__, entity_type="deal", entity_id=12)
        log.info("Deal moved to closing")
    """
    return ContextLogger(logging.getLogger(name), context)


def log_external_call(
    logger: logging.Logger,
    service: str,
    operation: str,
    success: bool,
    duration_ms: float,
    **extra: Any,
) -> None:
    """
    Log one call to an LLM provider with standard fields.

    Successes log at INFO, failures at WARNING; the caller decides whether
    the failure is fatal.
    """
    outcome = "completed in" if success else "failed after"
    logger.log(
        logging.INFO if success else logging.WARNING,
        f"External call: {service}.{operation} {outcome} {duration_ms:.2f}ms",
        extra={"extra_data": {
            "service": service,
            "operation": operation,
            "success": success,
            "duration_ms": round(duration_ms, 2),
            **extra,
        }},
    )


__all__ = [
    "setup_logging",
    "get_logger",
    "get_context_logger",
    "log_external_call",
    "JSONFormatter",
    "ContextLogger",
    "RequestContext",
    "RequestContextFilter",
    "REQUEST_ID_HEADER",
    "bind_request_context",
    "reset_request_context",
    "current_request_context",
    "set_request_user",
]
