"""
Logging configuration.

Provides a single entry point for configuring structured logging.
Diagnostics (failed jobs, unreachable hosts, interrupts) go to stderr;
the optional trace sink receives every DEBUG event as well (slot table,
admissions, waits, launches, reaps).

Configuration is read from arguments or environment variables:
- FORKARGS_LOG_LEVEL: DEBUG | INFO | WARNING | ERROR (default: WARNING)
- FORKARGS_LOG_FORMAT: json | console (default: console)

Usage:
    # Configure at application startup
    from forkargs.core.logging import configure_logging, get_logger
    configure_logging(level="WARNING", trace=open("trace.log", "w"))

    logger = get_logger(__name__)
    logger.info("job.launched", slot=0, pid=1234)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Literal, TextIO

import structlog
from structlog.types import Processor

# Track if logging has been configured
_configured = False

_HANDLER_MARK = "_forkargs_handler"


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | str | None = None,
    format: Literal["json", "console"] | str | None = None,
    trace: TextIO | None = None,
    force: bool = False,
) -> None:
    """
    Configure structured logging for the application.

    Should be called once at startup (CLI entry). Subsequent calls are
    no-ops unless force=True.

    Args:
        level: Level for the stderr diagnostics (overrides FORKARGS_LOG_LEVEL)
        format: Output format (overrides FORKARGS_LOG_FORMAT)
        trace: Stream receiving every event down to DEBUG
        force: Reconfigure even if already configured
    """
    global _configured

    if _configured and not force:
        return

    log_level = (level or os.environ.get("FORKARGS_LOG_LEVEL", "WARNING")).upper()
    log_format = (format or os.environ.get("FORKARGS_LOG_FORMAT", "console")).lower()
    level_num = getattr(logging, log_level)

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=trace is None and sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            root.removeHandler(handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(level_num)
    _attach(root, stderr_handler)

    if trace is not None:
        trace_handler = logging.StreamHandler(trace)
        trace_handler.setLevel(logging.DEBUG)
        _attach(root, trace_handler)

    effective = logging.DEBUG if trace is not None else level_num
    root.setLevel(effective)
    logging.getLogger("forkargs").setLevel(effective)

    _configured = True


def _attach(root: logging.Logger, handler: logging.Handler) -> None:
    handler.setFormatter(logging.Formatter("%(message)s"))
    setattr(handler, _HANDLER_MARK, True)
    root.addHandler(handler)


def reset_logging() -> None:
    """Detach forkargs handlers and restore structlog defaults."""
    global _configured

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            root.removeHandler(handler)
    structlog.reset_defaults()
    _configured = False


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def is_debug_enabled() -> bool:
    """Check if DEBUG level logging is enabled (i.e. a trace sink is attached)."""
    return logging.getLogger("forkargs").isEnabledFor(logging.DEBUG)


def is_configured() -> bool:
    """Check if logging has been configured."""
    return _configured


__all__ = [
    "configure_logging",
    "reset_logging",
    "get_logger",
    "is_debug_enabled",
    "is_configured",
]
