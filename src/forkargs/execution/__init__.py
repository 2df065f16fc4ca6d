"""forkargs execution — slot scheduling and dispatch.

ARCHITECTURE
────────────
::

    slot spec string
      │  slotspec.parse_slot_spec()
      ▼
    SlotTable.build(descriptors, command, ssh_argv)
      │  ReachabilityProber.probe()      ─ faults unreachable hosts
      │  WorkdirSync.push()              ─ optional, best effort
      ▼
    Dispatcher.run(lines)
      ├── ProcessLauncher   ─ spawn / await_any
      ├── Reaper            ─ frees slots, records failures
      └── SignalController  ─ drain, then force
      │
      ▼
    RunState (error_encountered, interrupted, counters)

MODULE MAP (recommended reading order)
──────────────────────────────────────
  1. slotspec.py    ─ grammar → SlotDescriptor list
  2. slots.py       ─ Slot, SlotTable, RunState, state machine
  3. quoting.py     ─ remote shell escaping
  4. launcher.py    ─ JobHandle, ProcessLauncher
  5. prober.py      ─ ReachabilityProber
  6. reaper.py      ─ Reaper, Completion
  7. signals.py     ─ SignalController
  8. dispatcher.py  ─ Dispatcher
  9. sync.py        ─ WorkdirSync
"""

from forkargs.execution.dispatcher import Dispatcher
from forkargs.execution.launcher import JobHandle, ProcessLauncher
from forkargs.execution.prober import ReachabilityProber
from forkargs.execution.quoting import quote_path, shell_join, shell_quote
from forkargs.execution.reaper import Completion, Reaper
from forkargs.execution.signals import SignalController
from forkargs.execution.slots import (
    Interruption,
    RunState,
    Slot,
    SlotKind,
    SlotState,
    SlotTable,
)
from forkargs.execution.slotspec import SlotDescriptor, parse_slot_spec
from forkargs.execution.sync import SyncTarget, WorkdirSync

__all__ = [
    "Dispatcher",
    "JobHandle",
    "ProcessLauncher",
    "ReachabilityProber",
    "quote_path",
    "shell_join",
    "shell_quote",
    "Completion",
    "Reaper",
    "SignalController",
    "Interruption",
    "RunState",
    "Slot",
    "SlotKind",
    "SlotState",
    "SlotTable",
    "SlotDescriptor",
    "parse_slot_spec",
    "SyncTarget",
    "WorkdirSync",
]
