"""
Structured logging for the intake engine.

structlog renders JSON lines in production and colored console output in
development. Two context variables tie log lines together: ``trace_id``
for one caller turn and ``session_id`` for the conversation it belongs
to. Anything logged by the aggregator or a provider while a session is
bound picks up the session id without having to pass it around.

Usage:
    from smart_intake.logging_config import get_logger, session_context

    logger = get_logger(__name__)

    with session_context(session.id):
        logger.info("defaults_aggregated", field="vendor_name", confidence=0.9)
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Optional

import structlog

from smart_intake.config import Settings, get_settings

trace_id_var: ContextVar[str] = ContextVar("trace_id", default="")
session_id_var: ContextVar[str] = ContextVar("session_id", default="")

# Loggers that are chatty at INFO and never useful to us
QUIET_LOGGERS = ("asyncio",)


def generate_trace_id() -> str:
    """Short random id for correlating one caller turn."""
    return uuid.uuid4().hex[:12]


@contextmanager
def session_context(session_id: Any, trace_id: Optional[str] = None) -> Iterator[None]:
    """
    Bind ``session_id`` (and optionally ``trace_id``) for the enclosed block.

    Previous values are restored on exit, so nested sessions are safe.
    """
    session_token = session_id_var.set(str(session_id))
    trace_token = trace_id_var.set(trace_id) if trace_id is not None else None
    try:
        yield
    finally:
        session_id_var.reset(session_token)
        if trace_token is not None:
            trace_id_var.reset(trace_token)


def _add_correlation_ids(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Copy the bound correlation ids into the event unless already set."""
    for key, var in (("trace_id", trace_id_var), ("session_id", session_id_var)):
        value = var.get()
        if value:
            event_dict.setdefault(key, value)
    return event_dict


def _renderer(settings: Settings) -> structlog.types.Processor:
    if settings.is_production:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging(settings: Settings | None = None) -> None:
    """
    Route structlog and stdlib logging through one stdout handler.

    Safe to call more than once; the root handlers are replaced each time.
    """
    settings = settings or get_settings()

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_correlation_ids,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(settings),
        ],
    ))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(settings.log_level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
