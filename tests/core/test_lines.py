"""Tests for iter_lines."""

import io
import os

from forkargs.core.lines import iter_lines


def _lines(data: bytes, chunk_size: int = 8192) -> list[str]:
    return list(iter_lines(io.BytesIO(data), chunk_size=chunk_size))


class TestIterLines:
    def test_strips_only_newline(self):
        assert _lines(b"a\n b \n\tc\t\n") == ["a", " b ", "\tc\t"]

    def test_keeps_carriage_return(self):
        assert _lines(b"dos\r\n") == ["dos\r"]

    def test_final_unterminated_line(self):
        assert _lines(b"one\ntwo") == ["one", "two"]

    def test_empty_lines_are_lines(self):
        assert _lines(b"\n\nx\n") == ["", "", "x"]

    def test_empty_stream(self):
        assert _lines(b"") == []

    def test_lines_spanning_chunks(self):
        data = b"alpha\nbeta gamma\ndelta\n"
        assert _lines(data, chunk_size=3) == ["alpha", "beta gamma", "delta"]

    def test_no_quote_interpretation(self):
        assert _lines(b"'a b' \"c\" d\\ e\n") == ["'a b' \"c\" d\\ e"]

    def test_undecodable_bytes_round_trip(self):
        raw = b"caf\xe9.txt"
        [line] = _lines(raw + b"\n")
        assert os.fsencode(line) == raw

    def test_lazy(self):
        stream = io.BytesIO(b"first\nsecond\n")
        lines = iter_lines(stream, chunk_size=6)
        assert next(lines) == "first"
        assert stream.tell() == 6

    def test_stream_without_read1(self):
        class Plain:
            def __init__(self, data: bytes) -> None:
                self._buf = io.BytesIO(data)

            def read(self, size: int) -> bytes:
                return self._buf.read(size)

        assert list(iter_lines(Plain(b"x\ny\n"))) == ["x", "y"]
