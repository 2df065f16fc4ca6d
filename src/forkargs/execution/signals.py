"""Signal controller — two-stage cancellation.

Stage one (first interrupt)
    ``RunState.interrupted`` becomes ``DRAINING``. The dispatcher checks
    this before admitting each line, so no new job starts; running jobs
    are left alone. The handler is swapped for stage two.

Stage two (second and later interrupts)
    ``RunState.interrupted`` becomes ``FORCING`` and the interrupt is
    delivered directly to every busy slot's process. The dispatcher does
    nothing special: the reaper observes the terminations as usual.

Signal handlers run on the main thread between bytecodes, the same thread
that owns the slot table, so no locking is needed.

Usage::

    with SignalController(table, state):
        dispatcher.run(lines)
"""

from __future__ import annotations

import signal
from types import FrameType

from forkargs.core.logging import get_logger
from forkargs.execution.slots import Interruption, RunState, SlotTable

logger = get_logger(__name__)


class SignalController:
    """Installs the escalating interrupt handlers for one run."""

    def __init__(
        self,
        table: SlotTable,
        state: RunState,
        signum: int = signal.SIGINT,
    ) -> None:
        self._table = table
        self._state = state
        self._signum = signum
        self._previous = None
        self._installed = False

    # ── Stages ───────────────────────────────────────────────────────

    def request_drain(self) -> None:
        """Stage one: stop admitting new lines, let running jobs finish."""
        self._state.interrupted = Interruption.DRAINING
        logger.warning(
            "run.draining",
            running=self._table.busy_count,
            hint="interrupt again to stop running jobs",
        )

    def force(self) -> int:
        """Stage two: forward the interrupt to every running job.

        Returns:
            Number of jobs the signal was delivered to.
        """
        self._state.interrupted = Interruption.FORCING
        self._state.forced_signal = self._signum
        delivered = 0
        for slot in self._table.busy():
            if slot.handle is not None and slot.handle.interrupt(self._signum):
                delivered += 1
        logger.warning("run.forcing", signalled=delivered)
        return delivered

    # ── Handlers ─────────────────────────────────────────────────────

    def _on_first(self, signum: int, frame: FrameType | None) -> None:
        self.request_drain()
        signal.signal(self._signum, self._on_repeat)

    def _on_repeat(self, signum: int, frame: FrameType | None) -> None:
        self.force()

    def install(self) -> None:
        try:
            self._previous = signal.signal(self._signum, self._on_first)
        except ValueError:
            # Not in main thread — cancellation is unavailable.
            logger.debug("signals.not_installed", signum=self._signum)
            return
        self._installed = True

    def restore(self) -> None:
        if not self._installed:
            return
        previous = self._previous if self._previous is not None else signal.SIG_DFL
        signal.signal(self._signum, previous)
        self._installed = False

    def __enter__(self) -> SignalController:
        self.install()
        return self

    def __exit__(self, *exc) -> None:
        self.restore()
