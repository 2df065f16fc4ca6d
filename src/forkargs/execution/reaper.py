"""Reaper — collects terminated jobs and frees their slots."""

from __future__ import annotations

from dataclasses import dataclass

from forkargs.core.logging import get_logger
from forkargs.execution.launcher import JobHandle, ProcessLauncher
from forkargs.execution.slots import RunState, Slot, SlotTable

logger = get_logger(__name__)


@dataclass(frozen=True)
class Completion:
    """One reaped job."""

    slot: Slot
    handle: JobHandle
    line: str | None
    status: int

    @property
    def ok(self) -> bool:
        return self.status == 0


def describe_status(status: int) -> str:
    if status < 0:
        return f"killed by signal {-status}"
    return f"exit code {status}"


class Reaper:
    """Waits for any child to terminate and returns its slot to IDLE.

    A nonzero status marks the run as failed (``error_encountered``) and
    emits a diagnostic naming the host and the status. Whether that halts
    further admission is the dispatcher's policy, not the reaper's.
    """

    def __init__(self, table: SlotTable, launcher: ProcessLauncher, state: RunState) -> None:
        self._table = table
        self._launcher = launcher
        self._state = state

    def reap_one(self) -> Completion:
        """Block until one job finishes.

        Raises:
            InternalInvariantError: If the terminated job has no owning slot.
        """
        handle, status = self._launcher.await_any()
        return self._complete(handle, status)

    def reap_ready(self) -> list[Completion]:
        """Collect every job that has already terminated, without blocking."""
        completions = []
        while (finished := self._launcher.poll_any()) is not None:
            completions.append(self._complete(*finished))
        return completions

    def _complete(self, handle: JobHandle, status: int) -> Completion:
        slot = self._table.owner_of(handle)
        line = slot.release()

        if status != 0:
            self._state.error_encountered = True
            self._state.jobs_failed += 1
            logger.warning(
                "job.failed",
                host=slot.label,
                slot=slot.index,
                status=status,
                reason=describe_status(status),
                line=line,
            )
        else:
            logger.debug("job.completed", host=slot.label, slot=slot.index, pid=handle.pid)
        return Completion(slot=slot, handle=handle, line=line, status=status)
