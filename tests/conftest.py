"""
Shared pytest fixtures and configuration for forkargs tests.

This module provides:
- Environment isolation (no FORKARGS_* leaking in from the developer shell)
- Logging reset between tests
- Fake ``ssh`` / ``rsync`` executables for running remote slots locally
- Slot table builders

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments.

    def test_remote(fake_ssh, tmp_path):
        table = SlotTable.build(parse_slot_spec("hostA"), ["true"], [str(fake_ssh)])
"""

import os
import stat
import sys
from pathlib import Path
from typing import Generator

import pytest

# Ensure forkargs package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from forkargs.core.logging import reset_logging
from forkargs.execution.slots import SlotTable
from forkargs.execution.slotspec import parse_slot_spec


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        # Mark all tests without explicit markers as unit tests
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_forkargs_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove every FORKARGS_* variable so settings start from defaults."""
    for name in list(os.environ):
        if name.upper().startswith("FORKARGS_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def clean_logging() -> Generator[None, None, None]:
    """
    Detach forkargs log handlers after each test.

    The CLI binds a handler to whatever ``sys.stderr`` is at invocation
    time; under CliRunner that stream is closed once the invocation ends.
    """
    yield
    reset_logging()


# =============================================================================
# Fake remote tooling
# =============================================================================


FAKE_SSH = """#!/bin/sh
# Minimal ssh stand-in: skip options, take the host, run the rest locally.
while [ $# -gt 0 ]; do
    case "$1" in
        -o|-p|-i|-l) shift 2 ;;
        -*) shift ;;
        *) break ;;
    esac
done
host="$1"
shift
case "$host" in
    down*) echo "ssh: connect to host $host: Connection refused" >&2; exit 255 ;;
esac
exec sh -c "$*"
"""


def _write_script(path: Path, body: str) -> Path:
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_ssh(tmp_path: Path) -> Path:
    """
    Executable that behaves like ``ssh host cmd...`` against the local shell.

    Hosts whose name starts with ``down`` are unreachable (exit 255).
    """
    bindir = tmp_path / "bin"
    bindir.mkdir(exist_ok=True)
    return _write_script(bindir / "fake-ssh", FAKE_SSH)


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    """Empty directory to use as a slot working directory."""
    path = tmp_path / "work"
    path.mkdir()
    return path


# =============================================================================
# Slot table builders
# =============================================================================


@pytest.fixture
def make_table():
    """
    Build a SlotTable from a spec string and a command.

        table = make_table("2", ["true"])
    """

    def _make(spec: str, command: list[str], ssh_argv: list[str] | None = None) -> SlotTable:
        return SlotTable.build(parse_slot_spec(spec), command, ssh_argv or ["ssh"])

    return _make
