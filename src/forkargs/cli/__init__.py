"""
forkargs CLI — the ``forkargs`` command built with Typer.
"""

from forkargs.cli.app import app

__all__ = ["app"]
