"""Dispatcher — the admission / dispatch / reap loop.

WHY
───
Fanning a long input out to commands must exploit every core or machine
without ever running more jobs than there are slots.  The dispatcher is a
single-threaded, cooperative loop: it does no work while waiting other
than blocking on "wait for any child".

ARCHITECTURE
────────────
::

    for line in lines:                      (input order)
      ├── reaper.reap_ready()               (non-blocking, frees exited slots)
      ├── may_admit()?   interrupted == NONE and (no failure or keep_going)
      ├── while busy + faulted ≥ len(table):
      │       reaper.reap_one()             (suspension point 1)
      │       may_admit()?                  (re-checked after every reap)
      ├── slot = table.first_idle()         (lowest index wins)
      └── launcher.spawn(slot.argv_for(line)) → slot BUSY
    drain: while busy: reaper.reap_one()    (suspension point 2)

Dispatch priority is strict: among idle slots the lowest index always
wins, so earlier-declared slots are saturated before later ones are used.

Error-admission policy
    By default the first nonzero job status stops admission; jobs already
    running still complete.  With ``keep_going`` admission continues.  In
    both modes ``RunState.error_encountered`` makes the final status
    non-success.

Related modules:
    slots.py    — SlotTable / RunState owned by this loop
    reaper.py   — frees slots as children terminate
    signals.py  — flips RunState.interrupted asynchronously
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from forkargs.core.errors import NoUsableSlotsError
from forkargs.core.logging import get_logger
from forkargs.execution.launcher import ProcessLauncher
from forkargs.execution.reaper import Reaper
from forkargs.execution.slots import Interruption, RunState, Slot, SlotTable

logger = get_logger(__name__)

LaunchHook = Callable[[Slot, list[str]], None]


class Dispatcher:
    """Runs one job per input line across a fixed slot table.

    Parameters
    ----------
    table : SlotTable
        Slots for this run; reachability faults must already be applied.
    launcher : ProcessLauncher
        Spawns children and waits for any of them.
    state : RunState
        Shared with the signal controller; created if omitted.
    keep_going : bool
        Keep admitting lines after a job fails.
    on_launch : callable
        Called with ``(slot, argv)`` just before each job is spawned
        (used by the CLI's verbose echo).
    """

    def __init__(
        self,
        table: SlotTable,
        launcher: ProcessLauncher | None = None,
        state: RunState | None = None,
        *,
        keep_going: bool = False,
        on_launch: LaunchHook | None = None,
    ) -> None:
        self.table = table
        self.launcher = launcher or ProcessLauncher()
        self.state = state or RunState()
        self.keep_going = keep_going
        self.reaper = Reaper(table, self.launcher, self.state)
        self._on_launch = on_launch
        self.peak_busy = 0

    # ── Policy ───────────────────────────────────────────────────────

    def may_admit(self) -> bool:
        if self.state.interrupted is not Interruption.NONE:
            return False
        return self.keep_going or not self.state.error_encountered

    # ── Main loop ────────────────────────────────────────────────────

    def run(self, lines: Iterable[str]) -> RunState:
        """Dispatch every admissible line, then drain.

        Raises:
            NoUsableSlotsError: If every slot is faulted.
            InternalInvariantError: On slot-table bookkeeping bugs.
        """
        self.state.faulted_count = self.table.faulted_count
        if self.table.capacity == 0:
            raise NoUsableSlotsError(
                f"All {len(self.table)} slot(s) are faulted; nothing can be dispatched"
            )

        logger.debug(
            "run.started",
            slots=len(self.table),
            capacity=self.table.capacity,
            keep_going=self.keep_going,
        )

        for line in lines:
            self.reaper.reap_ready()
            if not self.may_admit() or not self._wait_for_slot():
                logger.debug(
                    "admission.halted",
                    interrupted=self.state.interrupted.value,
                    error=self.state.error_encountered,
                )
                break
            self.dispatch(line)

        self.drain()
        logger.info(
            "run.finished",
            started=self.state.jobs_started,
            failed=self.state.jobs_failed,
            interrupted=self.state.interrupted.value,
        )
        return self.state

    def _wait_for_slot(self) -> bool:
        """Block while at capacity. False if admission closed meanwhile."""
        while self.table.at_capacity():
            logger.debug(
                "admission.waiting",
                busy=self.table.busy_count,
                faulted=self.table.faulted_count,
            )
            self.reaper.reap_one()
            if not self.may_admit():
                return False
        return True

    def dispatch(self, line: str) -> Slot:
        """Launch *line* on the lowest-index idle slot."""
        slot = self.table.first_idle()
        argv = slot.argv_for(line)
        if self._on_launch is not None:
            self._on_launch(slot, argv)
        handle = self.launcher.spawn(argv, slot.spawn_workdir)
        slot.assign(handle, line)
        self.state.jobs_started += 1
        if self.state.interrupted is Interruption.FORCING:
            # Forced while this job was being spawned; it missed the broadcast.
            handle.interrupt(self.state.forced_signal)
        self.peak_busy = max(self.peak_busy, self.table.busy_count)
        logger.debug("job.dispatched", slot=slot.index, host=slot.label, pid=handle.pid, line=line)
        return slot

    def drain(self) -> None:
        """Wait for every busy slot to become idle."""
        while self.table.busy_count:
            logger.debug("run.draining_slots", busy=self.table.busy_count)
            self.reaper.reap_one()
