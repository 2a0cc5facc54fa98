#!/usr/bin/env python3
"""
structlog configuration for the cache layer.

Every event carries the id of the request that caused it, a UTC timestamp
and, where the caller passes one, a ``stage`` naming the step of the
read-through flow (``CACHE.1_KV_READ``, ``CACHE.4_WRITE_BACK``...). Output is
JSON for aggregation or a coloured console view for local work.

Customer e-mail addresses and phone numbers can reach log lines through
search queries, cache keys and origin error messages; they are masked in
those fields before rendering.
"""

import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

import structlog
from structlog.types import EventDict, WrappedLogger

from storefront_cache.core.config.settings import get_settings

# Tasks copy the context when created, so write-backs and refreshes spawned
# while serving a request log under that request's id.
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

_MASKS = (
    (re.compile(r"\b[\w.+-]+@[\w.-]+\.\w+\b"), "[EMAIL]"),
    (re.compile(r"\b(?:\+?\d{1,3}[-. ]?)?\d{3}[-. ]?\d{3}[-. ]?\d{4}\b"), "[PHONE]"),
)
_MASKED_FIELDS = ("event", "error", "cache_key", "query", "path")


def add_request_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    request_id = request_id_ctx.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    now = datetime.now(timezone.utc)
    event_dict["timestamp"] = now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return event_dict


def _mask(text: str) -> str:
    for pattern, replacement in _MASKS:
        text = pattern.sub(replacement, text)
    return text


def redact_pii(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask e-mail addresses and phone numbers in the fields that can carry customer text."""
    for field in _MASKED_FIELDS:
        value = event_dict.get(field)
        if isinstance(value, str):
            event_dict[field] = _mask(value)
    return event_dict


def _upper_level(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    level = event_dict.get("level")
    if level:
        event_dict["level"] = level.upper()
    return event_dict


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Configure stdlib logging and structlog. Called once from the app lifespan.

    Args:
        log_level: Overrides LOG_LEVEL
        log_format: Overrides LOG_FORMAT ('json' or 'console')
    """
    settings = get_settings().logging
    level = (log_level or settings.LOG_LEVEL).upper()
    fmt = log_format or settings.LOG_FORMAT

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=getattr(logging, level))

    renderer = (
        structlog.processors.JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_request_id,
            add_timestamp,
            structlog.stdlib.add_log_level,
            _upper_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_pii,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_id(request_id: str) -> None:
    request_id_ctx.set(request_id)


def get_request_id() -> str | None:
    return request_id_ctx.get()


def clear_request_id() -> None:
    request_id_ctx.set(None)


def log_stage(
    logger: structlog.stdlib.BoundLogger, stage: str, message: str, level: str = "info", **kwargs
) -> None:
    """
    Emit ``message`` at ``level`` tagged with a read-through stage.

    ``stage`` may be a Stage member or a plain string:

        log_stage(logger, Stage.KV_READ, "KV read timed out", level="warning", cache_key=key)
    """
    emit = getattr(logger, level.lower())
    emit(message, stage=str(getattr(stage, "value", stage)), **kwargs)
