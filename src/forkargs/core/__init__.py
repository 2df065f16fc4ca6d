"""forkargs core -- errors, logging, settings and input reading.

Architecture::

    errors.py      ForkargsError hierarchy + ExitStatus
    logging.py     structlog configuration (stderr diagnostics, trace sink)
    settings.py    FORKARGS_* environment defaults (pydantic-settings)
    lines.py       Lazy line reader over a byte stream
"""

from forkargs.core.errors import (
    ConfigError,
    ErrorCategory,
    ErrorContext,
    ExitStatus,
    ForkargsError,
    InternalInvariantError,
    LaunchError,
    NoUsableSlotsError,
    SlotSpecError,
    SyncConfigError,
)
from forkargs.core.lines import iter_lines
from forkargs.core.logging import configure_logging, get_logger

__all__ = [
    "ConfigError",
    "ErrorCategory",
    "ErrorContext",
    "ExitStatus",
    "ForkargsError",
    "InternalInvariantError",
    "LaunchError",
    "NoUsableSlotsError",
    "SlotSpecError",
    "SyncConfigError",
    "iter_lines",
    "configure_logging",
    "get_logger",
]
