"""Reachability prober — checks remote hosts before any job is dispatched.

Each distinct remote host (exact string match, first occurrence wins) is
probed once with ``ssh <host> true``. A failing host faults *every* slot
naming it; faulted slots keep their table position and count against
capacity for the rest of the run.

Probing is a host-level property: slots on the same host with different
working directories share one probe result.

Example::

    prober = ReachabilityProber(ssh_argv=["ssh", "-o", "BatchMode=yes"])
    results = prober.probe(table, state)   # {"build1": True, "build2": False}
"""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Sequence

from forkargs.core.logging import get_logger
from forkargs.execution.slots import RunState, SlotState, SlotTable

logger = get_logger(__name__)

PROBE_COMMAND = "true"


class ReachabilityProber:
    """Probes remote hosts and faults the slots of unreachable ones."""

    def __init__(
        self,
        ssh_argv: Sequence[str] = ("ssh",),
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self._ssh_argv = list(ssh_argv)
        self._runner = runner

    def check(self, host: str) -> int:
        """Run the no-op remote command on *host*; return its exit status.

        Spawn failures (``ssh`` missing) are reported as 127.
        """
        argv = [*self._ssh_argv, host, PROBE_COMMAND]
        try:
            result = self._runner(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                check=False,
            )
        except OSError as exc:
            logger.warning("probe.spawn_failed", host=host, error=str(exc))
            return 127
        return result.returncode

    def probe(self, table: SlotTable, state: RunState | None = None) -> dict[str, bool]:
        """Probe every remote host in *table* once and fault unreachable slots.

        Returns:
            Mapping of host → reachable, in first-occurrence order.
        """
        results: dict[str, bool] = {}
        for slot in table:
            if not slot.is_remote:
                continue
            host = slot.host
            if host not in results:
                status = self.check(host)
                results[host] = status == 0
                if status == 0:
                    logger.debug("probe.ok", host=host)
                else:
                    logger.warning("probe.unreachable", host=host, status=status)
            if not results[host] and slot.state is not SlotState.FAULTED:
                slot.fault()

        if state is not None:
            state.faulted_count = table.faulted_count
        return results
