"""Process launcher — one OS process per job.

ARCHITECTURE
────────────
::

    ProcessLauncher(isolate_groups=True)
      ├── .spawn(argv, workdir)      ─ Popen, stdin=/dev/null, own pgrp
      ├── .await_any()               ─ os.waitpid(-1) → (handle, status)
      ├── .poll_any()                ─ same, WNOHANG; None if nothing exited
      └── .active                    ─ handles not yet awaited

    Exit status convention (from await_any):
      ≥ 0   exit code of the child
      < 0   child was killed by signal -status
      127   launch failed: executable or working directory not found
      126   launch failed: permission denied / other OS error

Remote slots go through exactly the same interface: their argv is
already an ``ssh`` invocation, so nothing here knows about hosts.

A launch failure never aborts the run.  The failed job is queued as
already terminated and handed out by the next :meth:`await_any` or
:meth:`poll_any`, so the
reaper sees it like any other failing job.

Children get ``/dev/null`` as stdin so concurrently running jobs never
consume the dispatcher's input stream.  They are placed in their own
process group so that a terminal Ctrl-C reaches only the dispatcher,
which decides whether to drain or forward the interrupt.
"""

from __future__ import annotations

import os
import signal
import subprocess
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field

from forkargs.core.errors import InternalInvariantError, LaunchError
from forkargs.core.logging import get_logger

logger = get_logger(__name__)

STATUS_NOT_FOUND = 127
STATUS_CANNOT_EXECUTE = 126


@dataclass(eq=False)
class JobHandle:
    """A launched (or failed-to-launch) job. Compared by identity."""

    argv: list[str]
    pid: int | None = None
    process: subprocess.Popen | None = field(default=None, repr=False)
    own_group: bool = False
    returncode: int | None = None
    launch_error: LaunchError | None = None

    @property
    def running(self) -> bool:
        return self.pid is not None and self.returncode is None

    def interrupt(self, signum: int = signal.SIGINT) -> bool:
        """Deliver *signum* to the job's process (group). Returns False if already gone."""
        if not self.running:
            return False
        try:
            if self.own_group:
                os.killpg(self.pid, signum)
            else:
                os.kill(self.pid, signum)
        except ProcessLookupError:
            return False
        return True


class ProcessLauncher:
    """Starts jobs and waits for whichever finishes first."""

    def __init__(self, isolate_groups: bool = True) -> None:
        self._isolate = isolate_groups
        self._running: dict[int, JobHandle] = {}
        self._failed: deque[JobHandle] = deque()

    @property
    def active(self) -> int:
        """Jobs launched but not yet returned by :meth:`await_any`."""
        return len(self._running) + len(self._failed)

    def spawn(self, argv: Sequence[str], workdir: str | None = None) -> JobHandle:
        """Start *argv* in *workdir* (changed into by the child only)."""
        argv = list(argv)
        try:
            process = subprocess.Popen(
                argv,
                cwd=workdir,
                stdin=subprocess.DEVNULL,
                process_group=0 if self._isolate else None,
            )
        except OSError as exc:
            return self._record_failure(argv, workdir, exc)

        handle = JobHandle(argv=argv, pid=process.pid, process=process, own_group=self._isolate)
        self._running[process.pid] = handle
        logger.debug("job.spawned", pid=process.pid, argv=argv, workdir=workdir)
        return handle

    def await_any(self) -> tuple[JobHandle, int]:
        """Block until any launched job terminates; return it with its status.

        Raises:
            InternalInvariantError: If nothing is running, or the OS reports
                a child this launcher never started.
        """
        if self._failed:
            handle = self._failed.popleft()
            return handle, handle.returncode  # type: ignore[return-value]

        try:
            pid, wait_status = os.waitpid(-1, 0)
        except ChildProcessError as exc:
            raise InternalInvariantError(
                "Waiting for a job but no child process exists", cause=exc
            ) from exc

        return self._finish(pid, wait_status)

    def poll_any(self) -> tuple[JobHandle, int] | None:
        """Return a job that has already terminated, without blocking.

        ``None`` means every launched job is still running (or none is).
        """
        if self._failed:
            handle = self._failed.popleft()
            return handle, handle.returncode  # type: ignore[return-value]
        if not self._running:
            return None

        try:
            pid, wait_status = os.waitpid(-1, os.WNOHANG)
        except ChildProcessError as exc:
            raise InternalInvariantError(
                f"{len(self._running)} job(s) launched but no child process exists", cause=exc
            ) from exc
        if pid == 0:
            return None
        return self._finish(pid, wait_status)

    def _finish(self, pid: int, wait_status: int) -> tuple[JobHandle, int]:
        status = os.waitstatus_to_exitcode(wait_status)
        handle = self._running.pop(pid, None)
        if handle is None:
            raise InternalInvariantError(
                f"Child {pid} terminated but was never launched"
            ).with_context(pid=pid)

        handle.returncode = status
        if handle.process is not None:
            # Already reaped by waitpid; keep Popen from waiting again.
            handle.process.returncode = status
        logger.debug("job.exited", pid=pid, status=status)
        return handle, status

    def _record_failure(self, argv: list[str], workdir: str | None, exc: OSError) -> JobHandle:
        status = STATUS_NOT_FOUND if isinstance(exc, FileNotFoundError) else STATUS_CANNOT_EXECUTE
        error = LaunchError(f"Cannot launch {argv[0]!r}: {exc.strerror or exc}", cause=exc)
        error.with_context(argv=argv, workdir=workdir)
        logger.warning("job.launch_failed", status=status, **error.to_dict())
        handle = JobHandle(argv=argv, returncode=status, launch_error=error)
        self._failed.append(handle)
        return handle
