"""
forkargs - run a command once per input line across local and ssh slots.

- forkargs.core: errors, logging, settings, line reading
- forkargs.execution: slot table, dispatcher, launcher, reaper, signals
- forkargs.cli: the ``forkargs`` command
"""

__version__ = "0.1.0"
