"""
structlog setup for the service.

Two renderings are supported. ``console`` keeps lines readable next to
Uvicorn's own output; ``json`` emits one object per line for log shipping.
Request-scoped values (request_id, tenant_slug) come from contextvars.
"""

import logging
import os
import socket

import structlog

from platform_access.config import Settings, settings

_ORIGIN = f"{socket.gethostname()}:{os.getpid()}"


def _render_console(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> str:
    """Render ``LEVEL:     [host:pid] event key=value ...``."""
    level = event_dict.pop("level", method_name).upper()
    parts = [f"{level}:".ljust(10) + f"[{_ORIGIN}]", str(event_dict.pop("event", ""))]
    parts.extend(f"{key}={value}" for key, value in event_dict.items())
    return " ".join(parts)


def _add_origin(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("origin", _ORIGIN)
    return event_dict


def _renderer_chain(log_format: str) -> list:
    if log_format == "json":
        return [
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_origin,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    if log_format == "console":
        return [_render_console]
    raise ValueError(f"Unknown LOG_FORMAT: {log_format!r}")


def setup_logging(config: Settings | None = None) -> None:
    """Configure structlog from `config` (the process settings by default).

    Logging is process-wide: the last call wins.
    """
    config = config or settings
    threshold = logging.DEBUG if config.debug else logging.INFO

    # RequestContextMiddleware writes the access line instead.
    access = logging.getLogger("uvicorn.access")
    access.handlers = []
    access.propagate = False
    access.disabled = True

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            *_renderer_chain(config.log_format),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Return a structlog logger, usually named after the calling module."""
    return structlog.get_logger(name)
