"""
Structured logging configuration using structlog.

Provides JSON-formatted logs with contextual information shared by request
handlers, the auth gate and maintenance scripts.

Features:
- JSON structured logging for production
- Pretty console logging for development
- Request ID tracking
- Redaction of credential-bearing keys before rendering
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor

from app.config import settings

# Context variables for request tracking
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_ctx: ContextVar[int | None] = ContextVar("user_id", default=None)

# Keys whose values are replaced before a log line is rendered
REDACTED_KEYS = frozenset(
    {
        "password",
        "secret",
        "signature",
        "token",
        "auth_token",
        "key_secret",
        "webhook_secret",
    }
)


def add_context_info(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add contextual information to log records."""
    request_id = request_id_ctx.get(None)
    if request_id:
        event_dict["request_id"] = request_id

    user_id = user_id_ctx.get(None)
    if user_id:
        event_dict["user_id"] = user_id

    return event_dict


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask values of credential-bearing keys."""
    for key in event_dict.keys() & REDACTED_KEYS:
        event_dict[key] = "[redacted]"
    return event_dict


def configure_logging() -> None:
    """
    Configure structured logging for the application.

    In development: Pretty console output with colors
    In production: JSON-formatted logs for aggregation
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_context_info,
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.ENVIRONMENT == "development":
        processors: list[Processor] = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True)
        ]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.NOTSET),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper()),
    )

    # Reduce noise from third-party libraries
    if settings.ENVIRONMENT != "development":
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a logger instance with the given name.

    Example:
        logger = get_logger(__name__)
        logger.info("payment_verified", donation_id=42)
    """
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


def set_request_context(request_id: str, user_id: int | None = None) -> None:
    """
    Set context variables for the current request.

    Called by the request middleware so every log line of a request
    carries the same request ID.
    """
    request_id_ctx.set(request_id)
    if user_id:
        user_id_ctx.set(user_id)


def clear_request_context() -> None:
    """Clear context variables after request completes."""
    request_id_ctx.set(None)
    user_id_ctx.set(None)


def bind_context(**kwargs: Any) -> None:
    """
    Bind additional context to all subsequent logs in this context.

    Example:
        bind_context(script="reconcile_batch_totals")
        logger.info("batch_checked")  # includes script
    """
    structlog.contextvars.bind_contextvars(**kwargs)
