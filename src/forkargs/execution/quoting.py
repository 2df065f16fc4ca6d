"""Shell quoting for arguments sent to a remote shell.

``ssh`` joins its remote-command arguments with spaces and hands the
result to the remote user's shell, which re-parses it. Every token we send
therefore has to be escaped so that the remote shell reconstructs it as
exactly one argument, byte for byte.

Characters in the safe set (ASCII letters and digits, ``_ - / .``) pass
through; every other character is preceded by a backslash. Two cases
cannot be expressed with a backslash alone:

- the empty string, which would vanish, becomes ``''``
- a newline, which a backslash would turn into a line continuation,
  becomes ``'\\n'`` (a newline inside single quotes)
"""

from __future__ import annotations

import string
from collections.abc import Iterable

SAFE_CHARS = frozenset(string.ascii_letters + string.digits + "_-/.")


def shell_quote(token: str) -> str:
    """Escape *token* so a POSIX shell parses it back as one identical word.

    Example:
        >>> shell_quote("it's a file.txt")
        "it\\\\'s\\\\ a\\\\ file.txt"
        >>> shell_quote("")
        "''"
    """
    if not token:
        return "''"
    parts = []
    for char in token:
        if char in SAFE_CHARS:
            parts.append(char)
        elif char == "\n":
            parts.append("'\n'")
        else:
            parts.append("\\" + char)
    return "".join(parts)


def shell_join(tokens: Iterable[str]) -> str:
    """Quote each token and join them with spaces (for display and remote commands)."""
    return " ".join(shell_quote(token) for token in tokens)


def quote_path(path: str) -> str:
    """Quote a remote directory, leaving a leading ``~`` or ``~user`` bare.

    The tilde prefix must stay unquoted for the remote shell to expand it;
    everything after it is quoted like any other token.

    Example:
        >>> quote_path("~/dir with space")
        '~/dir\\\\ with\\\\ space'
    """
    head, sep, rest = path.partition("/")
    if head.startswith("~") and all(char in SAFE_CHARS for char in head[1:]):
        return head + sep + (shell_quote(rest) if rest else "")
    return shell_quote(path)
