"""
Tests for the Dispatcher loop.

Tests cover:
- Bounded concurrency and every line dispatched exactly once
- Input order and lowest-index priority
- Default and keep-going error policies
- Faulted slots are never used
- Drain and force interrupts
- Exited jobs noticed before the next line is admitted
"""

import signal
import time
from pathlib import Path

import pytest

from forkargs.core.errors import NoUsableSlotsError
from forkargs.execution.dispatcher import Dispatcher
from forkargs.execution.signals import SignalController
from forkargs.execution.slots import Interruption, RunState, SlotState

APPEND_LINE = ["sh", "-c", 'printf "%s\\n" "$1" >> "$0"']


def _recorder():
    launched: list[tuple[int, list[str]]] = []

    def hook(slot, argv):
        launched.append((slot.index, argv))

    return launched, hook


def _spaced(lines, delay: float):
    """Yield *lines* with a pause before each one after the first."""
    for n, line in enumerate(lines):
        if n:
            time.sleep(delay)
        yield line


class TestConcurrency:
    def test_five_lines_two_slots(self, make_table, tmp_path: Path):
        out = tmp_path / "out"
        table = make_table("2", [*APPEND_LINE, str(out)])
        dispatcher = Dispatcher(table)

        state = dispatcher.run(f"line {n}" for n in range(5))

        assert state.exit_ok
        assert state.jobs_started == 5
        assert dispatcher.peak_busy == 2
        assert table.busy_count == 0
        assert sorted(out.read_text().splitlines()) == [f"line {n}" for n in range(5)]

    def test_never_exceeds_capacity(self, make_table):
        table = make_table("3", ["sleep"])
        busy_at_launch = []

        def hook(slot, argv):
            busy_at_launch.append(table.busy_count)

        Dispatcher(table, on_launch=hook).run(["0.05"] * 8)

        assert max(busy_at_launch) <= 2
        assert len(busy_at_launch) == 8

    def test_single_slot_keeps_input_order(self, make_table, tmp_path: Path):
        out = tmp_path / "out"
        table = make_table("1", [*APPEND_LINE, str(out)])
        lines = ["c", "a", "b", "", "a b"]

        Dispatcher(table).run(lines)

        assert out.read_text().split("\n")[:-1] == lines

    def test_line_is_final_argument(self, make_table):
        table = make_table("1", ["true", "fixed"])
        launched, hook = _recorder()

        Dispatcher(table, on_launch=hook).run(["x y"])

        assert launched == [(0, ["true", "fixed", "x y"])]

    def test_lowest_index_first(self, make_table):
        table = make_table("3", ["sleep"])
        launched, hook = _recorder()

        Dispatcher(table, on_launch=hook).run(["0.2", "0.2"])

        assert [index for index, _ in launched] == [0, 1]

    def test_finished_slot_reused_first(self, make_table):
        table = make_table("2", ["true"])
        launched, hook = _recorder()

        Dispatcher(table, on_launch=hook).run(_spaced(["a", "b"], 0.5))

        assert [index for index, _ in launched] == [0, 0]

    def test_empty_input(self, make_table):
        state = Dispatcher(make_table("2", ["true"])).run([])
        assert state.jobs_started == 0
        assert state.exit_ok


class TestErrorPolicy:
    def test_first_failure_stops_admission(self, make_table):
        table = make_table("1", ["sh", "-c", 'exit "$1"', "_"])

        state = Dispatcher(table).run(["1", "0", "0", "0"])

        assert state.jobs_started == 1
        assert state.jobs_failed == 1
        assert not state.exit_ok

    def test_failure_seen_before_next_line(self, make_table):
        table = make_table("2", ["sh", "-c", 'exit "$1"', "_"])

        state = Dispatcher(table).run(_spaced(["1", "0"], 0.5))

        assert state.jobs_started == 1
        assert state.jobs_failed == 1

    def test_running_jobs_complete_after_failure(self, make_table, tmp_path: Path):
        out = tmp_path / "out"
        script = 'sleep "$1"; [ "$1" = 0 ] && exit 1; echo "$1" >> "$0"'
        table = make_table("2", ["sh", "-c", script, str(out)])

        state = Dispatcher(table).run(["0.3", "0", "0.1", "0.1"])

        assert state.jobs_started == 2
        assert out.read_text().splitlines() == ["0.3"]
        assert not state.exit_ok

    def test_keep_going(self, make_table):
        table = make_table("1", ["sh", "-c", 'exit "$1"', "_"])

        state = Dispatcher(table, keep_going=True).run(["1", "0", "2", "0"])

        assert state.jobs_started == 4
        assert state.jobs_failed == 2
        assert not state.exit_ok

    def test_launch_failure_counts_as_failure(self, make_table):
        table = make_table("2", ["/nonexistent/forkargs-test-cmd"])

        state = Dispatcher(table, keep_going=True).run(["a", "b", "c"])

        assert state.jobs_started == 3
        assert state.jobs_failed == 3
        assert table.busy_count == 0


class TestFaultedSlots:
    def test_faulted_slot_never_busy(self, make_table):
        table = make_table("3", ["true"])
        table[0].fault()
        launched, hook = _recorder()

        state = Dispatcher(table, on_launch=hook).run(["a", "b", "c", "d"])

        assert state.jobs_started == 4
        assert {index for index, _ in launched} <= {1, 2}
        assert table[0].state is SlotState.FAULTED

    def test_all_faulted(self, make_table):
        table = make_table("2", ["true"])
        for slot in table:
            slot.fault()

        with pytest.raises(NoUsableSlotsError):
            Dispatcher(table).run(["a"])

    def test_faulted_count_copied_to_state(self, make_table):
        table = make_table("2", ["true"])
        table[1].fault()
        state = Dispatcher(table).run([])
        assert state.faulted_count == 1


class TestInterrupts:
    def test_drain_stops_admission(self, make_table):
        table = make_table("2", ["true"])
        state = RunState()
        controller = SignalController(table, state)

        def hook(slot, argv):
            controller.request_drain()

        state = Dispatcher(table, state=state, on_launch=hook).run(["a", "b", "c"])

        assert state.jobs_started == 1
        assert state.interrupted is Interruption.DRAINING
        assert state.exit_ok

    def test_force_terminates_running_jobs(self, make_table):
        table = make_table("2", ["sleep"])
        state = RunState()
        controller = SignalController(table, state, signum=signal.SIGTERM)

        def hook(slot, argv):
            if slot.index == 1:
                controller.force()

        dispatcher = Dispatcher(table, state=state, on_launch=hook)
        state = dispatcher.run(["30", "30", "30"])

        assert state.interrupted is Interruption.FORCING
        assert state.jobs_started == 2
        assert state.jobs_failed == 2
        assert not state.exit_ok
        assert table.busy_count == 0

    def test_force_during_spawn_reaches_new_job(self, make_table):
        table = make_table("1", ["sleep"])
        state = RunState()
        controller = SignalController(table, state, signum=signal.SIGTERM)

        def hook(slot, argv):
            # The broadcast finds no busy slot; the job is spawned right after.
            assert controller.force() == 0

        started = time.monotonic()
        state = Dispatcher(table, state=state, on_launch=hook).run(["30"])

        assert state.jobs_started == 1
        assert state.jobs_failed == 1
        assert time.monotonic() - started < 10
        assert table.busy_count == 0

    def test_interrupted_before_start(self, make_table):
        table = make_table("2", ["true"])
        state = RunState(interrupted=Interruption.DRAINING)

        assert Dispatcher(table, state=state).run(["a"]).jobs_started == 0
