"""Slot specification parser.

Turns the textual description of the slot pool into an ordered list of
:class:`SlotDescriptor`.  Grammar (informal)::

    spec   := entry (',' entry)*
    entry  := count                        # <count> local slots
            | [count '*'] host [':' workdir]
    count  := positive decimal integer     # default 1
    host   := [A-Za-z0-9.@-]+              # 'localhost' or '-' mean local

Examples::

    "4"                      four local slots
    "1,1,1" / "1,2"          three local slots
    "3*localhost"            three local slots
    "2*build1:/scratch,-"    two slots on build1 (cd /scratch), one local
    "user@gpu:~/work"        one slot on gpu; '~' expanded by the remote shell

Entry order is dispatch priority: the first entry's slots are always
filled before later ones are used, so list the fastest machines first.
"""

from __future__ import annotations

import os
import string
from dataclasses import dataclass

from forkargs.core.errors import SlotSpecError

HOST_CHARS = frozenset(string.ascii_letters + string.digits + "-.@")
LOCAL_HOSTS = frozenset({"localhost", "-"})


@dataclass(frozen=True)
class SlotDescriptor:
    """One parsed slot, before it is bound to a command."""

    host: str | None = None
    workdir: str | None = None

    @property
    def is_local(self) -> bool:
        return self.host is None


def default_slot_count() -> int:
    """Number of processing units the platform reports, at least 1."""
    return max(1, os.cpu_count() or 1)


def parse_slot_spec(spec: str | None) -> list[SlotDescriptor]:
    """Parse a slot specification into descriptors, in declaration order.

    ``None`` yields one local slot per CPU.

    Raises:
        SlotSpecError: On any malformed entry. Nothing has been dispatched
            at this point, so the caller should report and exit.
    """
    if spec is None:
        return [SlotDescriptor()] * default_slot_count()

    descriptors: list[SlotDescriptor] = []
    for raw in spec.split(","):
        descriptors.extend(parse_entry(raw))
    return descriptors


def parse_entry(raw: str) -> list[SlotDescriptor]:
    """Expand a single comma-free entry into ``count`` descriptors."""
    entry = raw.strip()
    if not entry:
        raise SlotSpecError("Empty slot entry").with_context(entry=raw)

    if _is_count(entry):
        return [SlotDescriptor()] * _parse_count(entry, entry)

    count = 1
    rest = entry
    head, star, tail = entry.partition("*")
    if star and (not head or _is_count(head)):
        count = _parse_count(head, entry)
        rest = tail
        if not rest:
            raise SlotSpecError(
                f"Unterminated slot entry {entry!r}: host expected after '*'"
            ).with_context(entry=entry)

    host, colon, workdir = rest.partition(":")
    if not host:
        raise SlotSpecError(f"Empty host name in slot entry {entry!r}").with_context(entry=entry)
    if colon and not workdir:
        raise SlotSpecError(
            f"Unterminated slot entry {entry!r}: directory expected after ':'"
        ).with_context(entry=entry)

    bad = sorted(set(host) - HOST_CHARS)
    if bad:
        raise SlotSpecError(
            f"Invalid character(s) {''.join(bad)!r} in host name {host!r}"
        ).with_context(entry=entry)
    if _is_count(host):
        raise SlotSpecError(
            f"Ambiguous slot entry {entry!r}: numeric host name"
        ).with_context(entry=entry)

    descriptor = SlotDescriptor(
        host=None if host in LOCAL_HOSTS else host,
        workdir=workdir or None,
    )
    return [descriptor] * count


def _is_count(token: str) -> bool:
    return token.isascii() and token.isdigit()


def _parse_count(token: str, entry: str) -> int:
    if not token:
        raise SlotSpecError(f"Missing slot count before '*' in {entry!r}").with_context(entry=entry)
    count = int(token)
    if count <= 0:
        raise SlotSpecError(f"Slot count must be positive in {entry!r}").with_context(entry=entry)
    return count
