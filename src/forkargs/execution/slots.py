"""Slot table — the fixed, ordered set of execution channels for one run.

WHY
───
Bounded parallelism needs one place that knows, at every instant, which
channels are running which line.  The slot table is that place: it is built
once from the slot specification, never reordered, and mutated only by the
dispatcher's single control thread (dispatcher, reaper and signal handlers
all run on it).

ARCHITECTURE
────────────
::

    SlotTable (ordered, index == dispatch priority)
      ├── Slot 0  local            IDLE
      ├── Slot 1  local            BUSY(handle, line)
      ├── Slot 2  build1:/scratch  BUSY(handle, line)
      └── Slot 3  build2           FAULTED

    Valid transition graph::

        IDLE    → BUSY | FAULTED
        BUSY    → IDLE
        FAULTED → (terminal)

    Admission bound:  busy ≤ len(table) − faulted

Related modules:
    slotspec.py   — parses the textual specification into descriptors
    dispatcher.py — the only code that moves slots between states
"""

from __future__ import annotations

import os
import signal
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from forkargs.core.errors import InternalInvariantError
from forkargs.execution.quoting import quote_path, shell_quote

if TYPE_CHECKING:
    from forkargs.execution.launcher import JobHandle
    from forkargs.execution.slotspec import SlotDescriptor


class SlotKind(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class SlotState(str, Enum):
    """Lifecycle state of a slot. Exactly one holds at any time."""

    IDLE = "idle"
    BUSY = "busy"
    FAULTED = "faulted"


SLOT_VALID_TRANSITIONS: dict[SlotState, frozenset[SlotState]] = {
    SlotState.IDLE: frozenset({SlotState.BUSY, SlotState.FAULTED}),
    SlotState.BUSY: frozenset({SlotState.IDLE}),
    SlotState.FAULTED: frozenset(),  # terminal
}


def validate_slot_transition(current: SlotState, target: SlotState) -> None:
    """Raise :class:`InternalInvariantError` if *current → target* is illegal."""
    if target not in SLOT_VALID_TRANSITIONS.get(current, frozenset()):
        raise InternalInvariantError(
            f"Invalid slot transition: {current.value} → {target.value}"
        )


class Interruption(str, Enum):
    """Cancellation stage of a run."""

    NONE = "none"
    DRAINING = "draining"
    FORCING = "forcing"


@dataclass
class RunState:
    """Process-wide state for one invocation."""

    interrupted: Interruption = Interruption.NONE
    forced_signal: int = signal.SIGINT
    error_encountered: bool = False
    faulted_count: int = 0
    jobs_started: int = 0
    jobs_failed: int = 0

    @property
    def exit_ok(self) -> bool:
        return not self.error_encountered


@dataclass(eq=False)
class Slot:
    """One execution channel.

    ``base_argv`` already contains everything that precedes the job line:
    the user command for local slots; for remote slots the ``ssh``
    invocation, the optional ``cd <workdir> ;`` and every command token
    shell-escaped.
    """

    index: int
    kind: SlotKind
    base_argv: list[str]
    host: str | None = None
    workdir: str | None = None
    state: SlotState = SlotState.IDLE
    handle: JobHandle | None = field(default=None, repr=False)
    current_line: str | None = None

    @property
    def is_remote(self) -> bool:
        return self.kind is SlotKind.REMOTE

    @property
    def label(self) -> str:
        """Host name, or ``"local"`` for local slots."""
        return self.host if self.host is not None else "local"

    @property
    def spawn_workdir(self) -> str | None:
        """Directory the child changes into before exec (local slots only)."""
        return None if self.is_remote else self.workdir

    def argv_for(self, line: str) -> list[str]:
        """Final argument vector for running *line* on this slot."""
        return [*self.base_argv, shell_quote(line) if self.is_remote else line]

    # ── State transitions ────────────────────────────────────────────

    def assign(self, handle: JobHandle, line: str) -> None:
        validate_slot_transition(self.state, SlotState.BUSY)
        self.state = SlotState.BUSY
        self.handle = handle
        self.current_line = line

    def release(self) -> str | None:
        """Return to IDLE, giving back the line this slot was running."""
        validate_slot_transition(self.state, SlotState.IDLE)
        line = self.current_line
        self.state = SlotState.IDLE
        self.handle = None
        self.current_line = None
        return line

    def fault(self) -> None:
        validate_slot_transition(self.state, SlotState.FAULTED)
        self.state = SlotState.FAULTED


class SlotTable(Sequence[Slot]):
    """Ordered, fixed-size collection of slots.

    Order is immutable after construction; the index of a slot is its
    dispatch priority.
    """

    def __init__(self, slots: Sequence[Slot]) -> None:
        self._slots: tuple[Slot, ...] = tuple(slots)

    @classmethod
    def build(
        cls,
        descriptors: Sequence[SlotDescriptor],
        command: Sequence[str],
        ssh_argv: Sequence[str] = ("ssh",),
    ) -> SlotTable:
        """Expand parsed descriptors into slots sharing one command template."""
        slots = []
        for index, desc in enumerate(descriptors):
            if desc.host is None:
                workdir = os.path.expanduser(desc.workdir) if desc.workdir else None
                slots.append(
                    Slot(index=index, kind=SlotKind.LOCAL, base_argv=list(command), workdir=workdir)
                )
                continue
            base_argv = [*ssh_argv, desc.host]
            if desc.workdir:
                base_argv += ["cd", quote_path(desc.workdir), ";"]
            base_argv += [shell_quote(token) for token in command]
            slots.append(
                Slot(
                    index=index,
                    kind=SlotKind.REMOTE,
                    base_argv=base_argv,
                    host=desc.host,
                    workdir=desc.workdir,
                )
            )
        return cls(slots)

    # ── Sequence protocol ────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._slots)

    def __getitem__(self, index):  # type: ignore[override]
        return self._slots[index]

    def __iter__(self) -> Iterator[Slot]:
        return iter(self._slots)

    # ── Counters ─────────────────────────────────────────────────────

    def count_in(self, state: SlotState) -> int:
        return sum(1 for slot in self._slots if slot.state is state)

    @property
    def busy_count(self) -> int:
        return self.count_in(SlotState.BUSY)

    @property
    def faulted_count(self) -> int:
        return self.count_in(SlotState.FAULTED)

    @property
    def capacity(self) -> int:
        """Number of jobs that may run at once (total minus faulted)."""
        return len(self._slots) - self.faulted_count

    def at_capacity(self) -> bool:
        return self.busy_count + self.faulted_count >= len(self._slots)

    # ── Lookups ──────────────────────────────────────────────────────

    def first_idle(self) -> Slot:
        """Lowest-index idle slot.

        Raises:
            InternalInvariantError: If no slot is idle. Callers only ask
                after checking :meth:`at_capacity`, so this is a bookkeeping bug.
        """
        for slot in self._slots:
            if slot.state is SlotState.IDLE:
                return slot
        raise InternalInvariantError(
            f"No free slot although {self.busy_count} busy + "
            f"{self.faulted_count} faulted < {len(self._slots)}"
        )

    def owner_of(self, handle: JobHandle) -> Slot:
        """Slot whose running job is *handle* (linear scan)."""
        for slot in self._slots:
            if slot.state is SlotState.BUSY and slot.handle is handle:
                return slot
        raise InternalInvariantError(
            f"Cannot find child {handle.pid} in slot table"
        ).with_context(pid=handle.pid)

    def busy(self) -> list[Slot]:
        return [slot for slot in self._slots if slot.state is SlotState.BUSY]

    def remote_hosts(self) -> list[str]:
        """Distinct remote hosts in first-occurrence order."""
        seen: dict[str, None] = {}
        for slot in self._slots:
            if slot.host is not None:
                seen.setdefault(slot.host, None)
        return list(seen)
