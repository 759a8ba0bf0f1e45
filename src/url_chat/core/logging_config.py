"""Logging setup for url-chat.

Everything is rendered by structlog.  Records from ``logging.getLogger``
(uvicorn, httpx, the scraper modules) pass through the same processor chain
as ``structlog.get_logger`` events, so every line on stdout has one shape::

    {"event": "chat_fetch_degraded", "level": "warning", "logger": "...",
     "timestamp": "...", "request_id": "...", "url": "...", "kind": "..."}

``configure_logging("DEBUG")`` switches to a coloured console renderer for
local development.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
"""Id of the request being served; set by the HTTP middleware."""

REDACTED = "[REDACTED]"

#: Event keys containing any of these fragments have their values masked.
SENSITIVE_KEY_FRAGMENTS: tuple[str, ...] = (
    "api_key",
    "authorization",
    "password",
    "secret",
    "token",
)

#: Third-party loggers capped at WARNING unless running at DEBUG.
QUIET_LOGGERS: tuple[str, ...] = ("uvicorn.access", "httpx", "httpcore", "asyncio")


def _is_sensitive(key: object) -> bool:
    lowered = str(key).lower()
    return any(fragment in lowered for fragment in SENSITIVE_KEY_FRAGMENTS)


def mask_sensitive_values(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    """Mask credential values, including one level down (e.g. ``headers={...}``).

    Nested dicts are copied before masking so the caller's object is left
    untouched.
    """
    for key, value in event_dict.items():
        if _is_sensitive(key):
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                k: REDACTED if _is_sensitive(k) else v for k, v in value.items()
            }
    return event_dict


def add_request_id(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    request_id = request_id_var.get()
    if request_id is not None:
        event_dict.setdefault("request_id", request_id)
    return event_dict


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        add_request_id,
        mask_sensitive_values,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(log_level: str = "INFO") -> None:
    """Send stdlib and structlog output through one renderer on stdout.

    Safe to call repeatedly: the root handler is replaced, not added to.

    Args:
        log_level: Standard level name, case-insensitive.  ``"DEBUG"`` also
            selects the console renderer.
    """
    level_name = log_level.upper()
    debug = level_name == "DEBUG"
    renderer: Processor = (
        structlog.dev.ConsoleRenderer(colors=True)
        if debug
        else structlog.processors.JSONRenderer()
    )
    pre_chain = _pre_chain()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if debug else logging.WARNING)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
