"""Working-directory synchronization — best-effort push before, pull after.

When enabled, the invoking directory is mirrored into every declared slot
working directory before the run, and each of those directories is
mirrored back afterwards.  ``rsync -a`` does the copying; nothing is ever
deleted and conflicts are resolved by rsync's own rules (last copy wins).

Preconditions
    Every slot must declare a working directory (``host:dir`` or
    ``localhost:dir``), otherwise :class:`SyncConfigError` is raised before
    anything runs.

De-duplication
    Targets are keyed by ``(host, workdir)``: several slots sharing a host
    and directory are synced once.  Reachability stays host-level, so
    targets whose slots are faulted are skipped entirely.

Failures
    A failed push faults the target's slots (the run has not started, so
    ``IDLE → FAULTED`` is still legal).  A failed pull is logged and leaves
    the exit status alone.
"""

from __future__ import annotations

import shlex
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from forkargs.core.errors import SyncConfigError
from forkargs.core.logging import get_logger
from forkargs.execution.slots import RunState, SlotState, SlotTable

logger = get_logger(__name__)


@dataclass(frozen=True)
class SyncTarget:
    """One distinct ``(host, workdir)`` pair and the slots that use it."""

    host: str | None
    workdir: str
    slots: tuple[int, ...]

    @property
    def location(self) -> str:
        """rsync path of the directory contents."""
        path = self.workdir.rstrip("/") + "/"
        return path if self.host is None else f"{self.host}:{path}"


class WorkdirSync:
    """Mirrors a local tree to and from each slot working directory."""

    def __init__(
        self,
        table: SlotTable,
        source: Path | None = None,
        rsync_argv: Sequence[str] = ("rsync",),
        ssh_argv: Sequence[str] = ("ssh",),
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self._table = table
        self._source = source or Path.cwd()
        self._rsync_argv = list(rsync_argv)
        self._ssh_argv = list(ssh_argv)
        self._runner = runner

    def validate(self) -> None:
        missing = [slot.index for slot in self._table if not slot.workdir]
        if missing:
            raise SyncConfigError(
                "Working-directory sync needs a directory on every slot; "
                f"slot(s) {', '.join(map(str, missing))} declare none"
            ).with_context(slots=missing)

    def targets(self) -> list[SyncTarget]:
        """Distinct targets among non-faulted slots, in slot order."""
        self.validate()
        grouped: dict[tuple[str | None, str], list[int]] = {}
        for slot in self._table:
            if slot.state is SlotState.FAULTED:
                continue
            grouped.setdefault((slot.host, slot.workdir), []).append(slot.index)
        return [
            SyncTarget(host=host, workdir=workdir, slots=tuple(indexes))
            for (host, workdir), indexes in grouped.items()
        ]

    # ── Transfers ────────────────────────────────────────────────────

    def push(self, state: RunState | None = None) -> list[SyncTarget]:
        """Copy the source tree into every target. Returns the targets that failed."""
        failed = []
        source = str(self._source).rstrip("/") + "/"
        for target in self.targets():
            if self._rsync(source, target.location, target) == 0:
                continue
            failed.append(target)
            for index in target.slots:
                slot = self._table[index]
                if slot.state is SlotState.IDLE:
                    slot.fault()
        if state is not None:
            state.faulted_count = self._table.faulted_count
        return failed

    def pull(self) -> list[SyncTarget]:
        """Copy every target back into the source tree. Returns the targets that failed."""
        failed = []
        destination = str(self._source).rstrip("/") + "/"
        for target in self.targets():
            if self._rsync(target.location, destination, target) != 0:
                failed.append(target)
        return failed

    def _rsync(self, src: str, dst: str, target: SyncTarget) -> int:
        argv = [*self._rsync_argv, "-a"]
        if target.host is not None:
            argv += ["-e", shlex.join(self._ssh_argv)]
        argv += [src, dst]
        logger.debug("sync.transfer", argv=argv)
        try:
            result = self._runner(argv, stdin=subprocess.DEVNULL, check=False)
        except OSError as exc:
            logger.error("sync.spawn_failed", host=target.host or "local", error=str(exc))
            return 127
        if result.returncode != 0:
            logger.error(
                "sync.failed",
                host=target.host or "local",
                workdir=target.workdir,
                status=result.returncode,
                src=src,
                dst=dst,
            )
        return result.returncode
