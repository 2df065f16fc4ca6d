"""Environment defaults for the ``forkargs`` command.

Every option the command line accepts has an environment default so that
a site can configure its slot pool once (typically ``FORKARGS_J``) and
scripts only pass the command.  Command-line flags always win.

Fields
──────
slots        : Slot specification (``FORKARGS_J`` or ``FORKARGS_SLOTS``)
keep_going   : Continue admitting lines after a job fails
verbose      : Echo every command to stderr before launching it
probe        : Probe remote hosts before dispatch
sync         : Best-effort working-directory push/pull around the run
ssh          : Command prefix used to reach remote slots
rsync        : Command prefix used by the working-directory sync
log_level    : Level of stderr diagnostics
log_format   : ``console`` or ``json``

Examples:
    >>> import os
    >>> os.environ["FORKARGS_J"] = "2*build1,build2:/scratch"
    >>> ForkargsSettings().slots
    '2*build1,build2:/scratch'
"""

from __future__ import annotations

import shlex

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from forkargs.core.errors import ConfigError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("console", "json")


class ForkargsSettings(BaseSettings):
    """Settings read from ``FORKARGS_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FORKARGS_",
        extra="ignore",
    )

    # ── Slots ────────────────────────────────────────────────────
    slots: str | None = Field(
        default=None,
        validation_alias=AliasChoices("FORKARGS_J", "FORKARGS_SLOTS"),
        description="Slot specification; unset means one local slot per CPU",
    )

    # ── Policy ───────────────────────────────────────────────────
    keep_going: bool = False
    verbose: bool = False
    probe: bool = True
    sync: bool = False

    # ── Remote commands ──────────────────────────────────────────
    ssh: str = "ssh"
    rsync: str = "rsync"

    # ── Observability ────────────────────────────────────────────
    log_level: str = "WARNING"
    log_format: str = "console"

    @field_validator("slots")
    @classmethod
    def _blank_means_unset(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"expected one of {', '.join(LOG_LEVELS)}")
        return level

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        fmt = value.lower()
        if fmt not in LOG_FORMATS:
            raise ValueError(f"expected one of {', '.join(LOG_FORMATS)}")
        return fmt

    @field_validator("ssh", "rsync")
    @classmethod
    def _splits_to_command(cls, value: str) -> str:
        if not shlex.split(value):
            raise ValueError("command prefix is empty")
        return value

    @property
    def ssh_argv(self) -> list[str]:
        return shlex.split(self.ssh)

    @property
    def rsync_argv(self) -> list[str]:
        return shlex.split(self.rsync)


def load_settings() -> ForkargsSettings:
    """Read settings from the current environment.

    Raises:
        ConfigError: If a FORKARGS_* variable holds an unusable value.
    """
    try:
        return ForkargsSettings()
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "?"
        raise ConfigError(
            f"Invalid environment setting {field!r}: {first['msg']}", cause=exc
        ).with_context(errors=exc.error_count()) from exc
