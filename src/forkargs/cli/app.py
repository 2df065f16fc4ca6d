"""
Typer application for the ``forkargs`` command.

    find . -name '*.tar' | forkargs -j 4 bzip2 -9
    ls *.wav | forkargs -j '2*build1:~/audio,-' flac --best

Every input line is passed as the final argument of one ``COMMAND``
invocation.  Options are only recognized before ``COMMAND``; everything
after it belongs to the command.
"""

from __future__ import annotations

import contextlib
import sys
from pathlib import Path
from typing import BinaryIO, TextIO

import typer

from forkargs.cli.utils import echo_command, print_error, print_slot_table
from forkargs.core.errors import ExitStatus, ForkargsError
from forkargs.core.lines import iter_lines
from forkargs.core.logging import configure_logging, get_logger
from forkargs.core.settings import ForkargsSettings, load_settings
from forkargs.execution.dispatcher import Dispatcher
from forkargs.execution.launcher import ProcessLauncher
from forkargs.execution.prober import ReachabilityProber
from forkargs.execution.signals import SignalController
from forkargs.execution.slots import RunState, Slot, SlotTable
from forkargs.execution.slotspec import parse_slot_spec
from forkargs.execution.sync import WorkdirSync

logger = get_logger(__name__)

app = typer.Typer(
    name="forkargs",
    help="Run a command once per input line, across a bounded pool of local and ssh slots.",
    add_completion=False,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        from forkargs import __version__

        try:
            v = pkg_version("forkargs")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"forkargs {v}")
        raise typer.Exit()


# ── Command ──────────────────────────────────────────────────────────────


@app.command(context_settings={"allow_interspersed_args": False})
def main(
    command: list[str] = typer.Argument(
        ..., metavar="COMMAND [ARGS]...", help="Command and fixed arguments; each line is appended."
    ),
    slots: str | None = typer.Option(  # noqa: UP007
        None,
        "--slots",
        "-j",
        help="Slot spec, e.g. '4' or '2*host1:/tmp,localhost'. Default: $FORKARGS_J or one per CPU.",
    ),
    keep_going: bool = typer.Option(False, "--keep-going", "-k", help="Keep starting jobs after one fails."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Echo each command to stderr before running it."),
    no_probe: bool = typer.Option(False, "--no-probe", help="Assume remote hosts are reachable."),
    input_file: Path | None = typer.Option(  # noqa: UP007
        None, "--input", "-i", exists=True, dir_okay=False, help="Read lines from FILE instead of stdin."
    ),
    trace: str | None = typer.Option(  # noqa: UP007
        None, "--trace", "-t", help="Write a process-control trace to FILE ('-' for stderr)."
    ),
    sync: bool = typer.Option(False, "--sync", help="Mirror the current directory to/from slot workdirs."),
    show_slots: bool = typer.Option(False, "--show-slots", help="Print the slot table and exit."),
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Run COMMAND once per input line, at most one job per slot at a time."""
    try:
        settings = load_settings()
    except ForkargsError as exc:
        print_error(exc.message)
        raise typer.Exit(code=ExitStatus.for_error(exc))

    try:
        trace_stream = _open_trace(trace)
    except OSError as exc:
        print_error(f"Cannot open trace file {trace!r}: {exc.strerror or exc}")
        raise typer.Exit(code=ExitStatus.SPEC_ERROR)

    try:
        configure_logging(
            level=settings.log_level,
            format=settings.log_format,
            trace=trace_stream,
            force=True,
        )
        status = run(
            command,
            settings=settings,
            spec=slots if slots is not None else settings.slots,
            keep_going=keep_going or settings.keep_going,
            verbose=verbose or settings.verbose,
            probe=settings.probe and not no_probe,
            sync=sync or settings.sync,
            show_slots=show_slots,
            input_file=input_file,
        )
    finally:
        if trace_stream is not None and trace_stream is not sys.stderr:
            trace_stream.close()

    raise typer.Exit(code=int(status))


def run(
    command: list[str],
    *,
    settings: ForkargsSettings,
    spec: str | None,
    keep_going: bool = False,
    verbose: bool = False,
    probe: bool = True,
    sync: bool = False,
    show_slots: bool = False,
    input_file: Path | None = None,
) -> ExitStatus:
    """Set up the slot table, dispatch every line and return the exit status."""
    state = RunState()
    try:
        table = SlotTable.build(parse_slot_spec(spec), command, settings.ssh_argv)
        logger.debug("slots.built", slots=[_describe(slot) for slot in table])

        syncer = None
        if sync:
            syncer = WorkdirSync(table, rsync_argv=settings.rsync_argv, ssh_argv=settings.ssh_argv)
            syncer.validate()

        if probe:
            ReachabilityProber(settings.ssh_argv).probe(table, state)

        if show_slots:
            print_slot_table(table)
            return ExitStatus.SUCCESS

        if syncer is not None:
            syncer.push(state)

        dispatcher = Dispatcher(
            table,
            ProcessLauncher(),
            state,
            keep_going=keep_going,
            on_launch=echo_command if verbose else None,
        )
        with _open_input(input_file) as stream, SignalController(table, state):
            dispatcher.run(iter_lines(stream))

        if syncer is not None:
            syncer.pull()
    except ForkargsError as exc:
        print_error(exc.message)
        logger.debug("run.aborted", **exc.to_dict())
        return ExitStatus.for_error(exc)

    return ExitStatus.SUCCESS if state.exit_ok else ExitStatus.JOB_FAILED


# ── Private helpers ──────────────────────────────────────────────────────


def _open_trace(trace: str | None) -> TextIO | None:
    if trace is None:
        return None
    if trace == "-":
        return sys.stderr
    return open(trace, "w", buffering=1)


def _open_input(input_file: Path | None) -> contextlib.AbstractContextManager[BinaryIO]:
    if input_file is not None:
        return open(input_file, "rb")
    return contextlib.nullcontext(sys.stdin.buffer)


def _describe(slot: Slot) -> dict[str, object]:
    return {
        "index": slot.index,
        "host": slot.label,
        "workdir": slot.workdir,
        "state": slot.state.value,
    }
