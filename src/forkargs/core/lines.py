"""Line reading from a byte stream.

Each input line becomes exactly one argument, so the reader never splits,
unquotes or re-encodes anything beyond stripping the ``\\n`` terminator.
Bytes are decoded with the filesystem encoding and ``surrogateescape``
(``os.fsdecode``), which lets arbitrary bytes survive the trip back into
an argument vector.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from typing import BinaryIO

DEFAULT_CHUNK_SIZE = 8192


def iter_lines(stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[str]:
    """Yield lines from *stream* lazily, without their ``\\n`` terminator.

    A final line without a terminator is still yielded. Iteration stops at
    end of stream; calling again on the same stream resumes from wherever
    the stream is positioned.

    ``read1`` is used when available so a line is yielded as soon as it
    arrives on a pipe instead of after a full chunk has been buffered.
    """
    read = getattr(stream, "read1", stream.read)
    buffer = bytearray()
    while True:
        chunk = read(chunk_size)
        if not chunk:
            break
        buffer += chunk
        start = 0
        while True:
            end = buffer.find(b"\n", start)
            if end < 0:
                break
            yield os.fsdecode(bytes(buffer[start:end]))
            start = end + 1
        del buffer[:start]
    if buffer:
        yield os.fsdecode(bytes(buffer))
