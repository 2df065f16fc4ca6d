"""
CLI utility helpers — terminal output for the ``forkargs`` command.

Job output owns stdout, so everything forkargs prints itself (verbose
echo, errors, log diagnostics) goes to stderr.  Only ``--show-slots``
writes to stdout, and it runs no jobs.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from forkargs.execution.quoting import shell_join
from forkargs.execution.slots import Slot, SlotState, SlotTable

console = Console()
err_console = Console(stderr=True)

_STATE_STYLE = {
    SlotState.IDLE: "green",
    SlotState.BUSY: "yellow",
    SlotState.FAULTED: "red",
}


def echo_command(slot: Slot, argv: list[str]) -> None:
    """Print the command about to run, shell-quoted, to stderr."""
    err_console.print(shell_join(argv), markup=False, highlight=False, soft_wrap=True)


def print_error(message: str) -> None:
    err_console.print(f"[bold red]Error[/bold red]: {escape(message)}", highlight=False)


def print_slot_table(table: SlotTable, *, title: str = "Slots") -> None:
    """Render the slot table as a Rich table."""
    out = Table(title=title or None, show_lines=False, pad_edge=False)
    out.add_column("#", justify="right")
    out.add_column("host")
    out.add_column("workdir", overflow="fold")
    out.add_column("state")
    out.add_column("command", overflow="fold")
    for slot in table:
        style = _STATE_STYLE[slot.state]
        out.add_row(
            str(slot.index),
            Text(slot.label),
            Text(slot.workdir or ""),
            Text(slot.state.value, style=style),
            Text(shell_join(slot.base_argv)),
        )
    console.print(out)
    console.print(
        f"\n[dim]{len(table)} slot(s), {table.faulted_count} faulted, "
        f"capacity {table.capacity}[/dim]"
    )
