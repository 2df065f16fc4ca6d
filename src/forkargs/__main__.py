"""Allow ``python -m forkargs``."""

from forkargs.cli.app import app

app(prog_name="forkargs")
