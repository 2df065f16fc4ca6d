"""
Structured error types for forkargs.

Every failure forkargs itself can raise is a ``ForkargsError`` carrying a
category, a structured context and an optional chained cause. The CLI maps
each error onto a process exit status through :class:`ExitStatus`, so the
operator sees one of a small, fixed set of outcomes.

Manifesto:
    - **Typed hierarchy:** Setup errors, invariant violations and job
      failures are different things and are handled at different layers
    - **Rich context:** Errors carry the slot, host or entry that caused them
    - **Error chaining:** Preserve the original ``OSError`` or ``ValueError``

Architecture:
    ::

        ┌───────────────────────────────────────────────────────────┐
        │                      ForkargsError                          │
        │                (category, context, cause)                   │
        ├───────────────────────────────────────────────────────────┤
        │                                                             │
        │  SlotSpecError       ConfigError          InternalInvariantError
        │  (PARSE)             (CONFIG)             (INTERNAL)        │
        │                          │                                  │
        │                  NoUsableSlotsError                         │
        │                  SyncConfigError                            │
        │                                                             │
        │  LaunchError (LAUNCH, contained to one job)                 │
        └───────────────────────────────────────────────────────────┘

    Job failures and reachability faults are not exceptions: they are
    recorded on the slot table and in ``RunState`` and only influence the
    final exit status.

Examples:
    >>> error = SlotSpecError("host name is empty").with_context(entry="2*")
    >>> error.context.entry
    '2*'
    >>> ExitStatus.for_error(error)
    <ExitStatus.SPEC_ERROR: 2>

Tags:
    error-handling, exception-hierarchy, exit-status, forkargs

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification.

    Attributes:
        PARSE: Malformed slot specification
        CONFIG: Unusable configuration discovered before dispatch
        LAUNCH: Process spawn or exec failure
        INTERNAL: Bookkeeping bugs, unexpected state
    """

    PARSE = "PARSE"
    CONFIG = "CONFIG"
    LAUNCH = "LAUNCH"
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Attributes:
        entry: Slot specification entry being parsed
        slot: Index of the slot involved
        host: Remote host involved (``None`` for local slots)
        pid: Process id involved
        metadata: Additional key-value pairs
    """

    entry: str | None = None
    slot: int | None = None
    host: str | None = None
    pid: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["entry", "slot", "host", "pid"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ForkargsError(Exception):
    """
    Base exception for all forkargs errors.

    Subclasses set ``default_category`` to describe their domain. Use
    :meth:`with_context` to attach the slot, host or spec entry that
    triggered the error, and pass ``cause=`` when wrapping another
    exception.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ForkargsError:
        """
        Add context to this error (fluent API).

        Usage:
            raise SlotSpecError("bad host").with_context(entry="a b")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# SETUP ERRORS (raised before any job runs)
# =============================================================================


class SlotSpecError(ForkargsError):
    """Malformed slot specification string."""

    default_category = ErrorCategory.PARSE


class ConfigError(ForkargsError):
    """Configuration that cannot be used for a run."""

    default_category = ErrorCategory.CONFIG


class NoUsableSlotsError(ConfigError):
    """Every slot in the table is faulted, so nothing could ever be dispatched."""


class SyncConfigError(ConfigError):
    """Working-directory synchronization preconditions are not met."""


# =============================================================================
# JOB-LEVEL ERRORS (contained to one job, never raised out of the launcher)
# =============================================================================


class LaunchError(ForkargsError):
    """
    A job could not be started (executable not found, permission denied,
    missing working directory).

    The launcher records it on the job handle and reports the job as
    terminated with a distinguishing status; the run itself continues.
    """

    default_category = ErrorCategory.LAUNCH


# =============================================================================
# INTERNAL ERRORS
# =============================================================================


class InternalInvariantError(ForkargsError):
    """
    Slot-table bookkeeping is inconsistent.

    Raised when a terminated child has no owning slot, when no idle slot
    exists although the capacity arithmetic says one must, or when a slot
    is asked to make an illegal state transition. Always a defect, never a
    condition to recover from.
    """

    default_category = ErrorCategory.INTERNAL


# =============================================================================
# EXIT STATUSES
# =============================================================================


class ExitStatus(IntEnum):
    """Process exit statuses reported by the ``forkargs`` command."""

    SUCCESS = 0
    JOB_FAILED = 1
    SPEC_ERROR = 2
    INTERNAL_ERROR = 3

    @classmethod
    def for_error(cls, error: Exception) -> ExitStatus:
        """Map an exception that aborted the run onto an exit status."""
        if isinstance(error, (SlotSpecError, ConfigError)):
            return cls.SPEC_ERROR
        return cls.INTERNAL_ERROR


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ForkargsError",
    "SlotSpecError",
    "ConfigError",
    "NoUsableSlotsError",
    "SyncConfigError",
    "LaunchError",
    "InternalInvariantError",
    "ExitStatus",
]
