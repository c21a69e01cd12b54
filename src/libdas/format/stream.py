"""Chunked, delimiter-aware file stream.

:class:`ChunkedScopeStream` reads a file through a fixed-capacity buffer.
Each refill is trimmed so that the delimiter (``ENDSCOPE\\n`` by default) is
never split across two chunks:

* the last complete delimiter in the window is located with a KMP search run
  backwards (reversed pattern over the reversed window) and the chunk ends
  right after it;
* otherwise, if the window tail is a partial delimiter prefix, the chunk ends
  before that prefix so the next chunk starts with the whole delimiter;
* otherwise the entire window is consumed.

The file cursor is rewound to the end of the reported chunk, so the next
refill starts exactly there. Memory stays bounded by ``capacity``.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, List

from ..logging import get_logger
from .constants import DEFAULT_CHUNK_SIZE, SCOPE_DELIMITER
from .errors import E_IO_OPEN, E_IO_READ, StreamError

__all__ = ["ChunkedScopeStream", "KmpMatcher", "failure_table"]


def failure_table(pattern: bytes) -> List[int]:
    """KMP failure function: longest proper prefix that is also a suffix."""
    table = [0] * len(pattern)
    k = 0
    for i in range(1, len(pattern)):
        while k and pattern[i] != pattern[k]:
            k = table[k - 1]
        if pattern[i] == pattern[k]:
            k += 1
        table[i] = k
    return table


class KmpMatcher:
    """Incremental KMP state machine.

    ``matched`` is the number of pattern bytes matched so far; after feeding
    a window it is the length of the longest window suffix that is a prefix
    of the pattern.
    """

    __slots__ = ("pattern", "failure", "matched")

    def __init__(self, pattern: bytes) -> None:
        if not pattern:
            raise ValueError("KMP pattern must not be empty")
        self.pattern = bytes(pattern)
        self.failure = failure_table(self.pattern)
        self.matched = 0

    def reset(self) -> None:
        self.matched = 0

    def feed(self, byte: int) -> bool:
        """Advance by one byte; True when a full occurrence ends here."""
        p = self.pattern
        k = self.matched
        while k and p[k] != byte:
            k = self.failure[k - 1]
        if p[k] == byte:
            k += 1
        if k == len(p):
            self.matched = self.failure[k - 1]
            return True
        self.matched = k
        return False


class ChunkedScopeStream:
    def __init__(
        self,
        capacity: int = DEFAULT_CHUNK_SIZE,
        delimiter: bytes = SCOPE_DELIMITER,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"Chunk capacity must be positive: {capacity}")
        self.capacity = capacity
        self.delimiter = bytes(delimiter)
        self._forward = KmpMatcher(self.delimiter)
        self._backward = KmpMatcher(self.delimiter[::-1])
        self._buffer = bytearray(capacity)
        self._valid = 0
        self._file: BinaryIO | None = None
        self.path: Path | None = None
        self.chunk_offset = 0
        self.bytes_consumed = 0

    # Lifecycle ----------------------------------------------------------------
    def open(self, path: str | Path) -> None:
        self.close()
        p = Path(path)
        try:
            self._file = p.open("rb")
        except OSError as exc:
            raise StreamError(
                E_IO_OPEN,
                f"Cannot open {p}: {exc.strerror or exc}",
                {"path": str(p)},
            ) from exc
        self.path = p
        self._valid = 0
        self.chunk_offset = 0
        self.bytes_consumed = 0
        get_logger().debug(
            "Opened %s (chunk capacity=%d)", p.name, self.capacity
        )

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def __enter__(self) -> "ChunkedScopeStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Reading ------------------------------------------------------------------
    def read_chunk(self) -> bool:
        """Refill the buffer from the current file offset.

        Returns False once the end of the stream has been reached.
        """
        if self._file is None:
            raise StreamError(E_IO_READ, "Stream is not open")
        offset = self.bytes_consumed
        view = memoryview(self._buffer)
        try:
            self._file.seek(offset)
            n = self._file.readinto(view)
        except OSError as exc:
            raise StreamError(
                E_IO_READ,
                f"Read failed at byte offset {offset}: {exc.strerror or exc}",
                {"path": str(self.path), "offset": offset},
            ) from exc
        finally:
            view.release()
        if not n:
            self._valid = 0
            return False
        if n < self.capacity:
            valid = n  # final window
        else:
            valid = self._resync_length(n)
        self.chunk_offset = offset
        self._valid = valid
        self.bytes_consumed = offset + valid
        return True

    def buffer_view(self) -> memoryview:
        """Valid bytes of the current chunk (read-only view)."""
        return memoryview(self._buffer)[: self._valid].toreadonly()

    def __len__(self) -> int:
        return self._valid

    # Resynchronisation ----------------------------------------------------------
    def _last_delimiter_end(self, n: int) -> int:
        """End index of the last complete delimiter in the window, or -1."""
        matcher = self._backward
        matcher.reset()
        buf = self._buffer
        m = len(self.delimiter)
        for i in range(n - 1, -1, -1):
            if matcher.feed(buf[i]):
                return i + m
        return -1

    def _partial_prefix_length(self, n: int) -> int:
        """Length of the longest window tail that is a delimiter prefix."""
        matcher = self._forward
        matcher.reset()
        buf = self._buffer
        start = max(0, n - (len(self.delimiter) - 1))
        for i in range(start, n):
            matcher.feed(buf[i])
        return matcher.matched

    def _resync_length(self, n: int) -> int:
        end = self._last_delimiter_end(n)
        if end > 0:
            return end
        partial = self._partial_prefix_length(n)
        if partial and n - partial > 0:
            return n - partial
        return n
