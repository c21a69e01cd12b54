from pathlib import Path

import pytest

from libdas.format.constants import SCOPE_DELIMITER
from libdas.format.errors import E_IO_OPEN, StreamError
from libdas.format.stream import ChunkedScopeStream, KmpMatcher, failure_table


def _chunks(path: Path, capacity: int) -> list[tuple[int, bytes]]:
    out = []
    with ChunkedScopeStream(capacity) as stream:
        stream.open(path)
        while stream.read_chunk():
            out.append((stream.chunk_offset, bytes(stream.buffer_view())))
    return out


def _occurrences(data: bytes, pattern: bytes) -> list[int]:
    found = []
    start = data.find(pattern)
    while start >= 0:
        found.append(start)
        start = data.find(pattern, start + 1)
    return found


def test_failure_table():
    assert failure_table(b"ENDSCOPE\n") == [0] * 9
    assert failure_table(b"ABAB") == [0, 0, 1, 2]
    assert failure_table(b"AAAA") == [0, 1, 2, 3]


def test_kmp_matcher_reports_matches_and_partial_state():
    m = KmpMatcher(b"ABAB")
    hits = [i for i, b in enumerate(b"xABABAB") if m.feed(b)]
    assert hits == [4, 6]
    m.reset()
    for b in b"zzAB":
        m.feed(b)
    assert m.matched == 2
    with pytest.raises(ValueError):
        KmpMatcher(b"")


def test_partial_delimiter_rewinds_to_prefix(tmp_path: Path):
    path = tmp_path / "s.bin"
    path.write_bytes(b"A" * 10 + SCOPE_DELIMITER + b"B" * 20)
    chunks = _chunks(path, 15)
    assert chunks == [
        (0, b"A" * 10),
        (10, SCOPE_DELIMITER),
        (19, b"B" * 15),
        (34, b"B" * 5),
    ]


def test_chunk_ends_after_last_complete_delimiter(tmp_path: Path):
    path = tmp_path / "s.bin"
    body = b"x" + SCOPE_DELIMITER + b"yy" + SCOPE_DELIMITER + b"zzzzzz"
    path.write_bytes(body + b"tail")
    first = _chunks(path, len(body))[0]
    assert first == (0, b"x" + SCOPE_DELIMITER + b"yy" + SCOPE_DELIMITER)


def test_no_chunk_splits_a_delimiter(tmp_path: Path):
    data = (
        b"PROPERTIES\n"
        + SCOPE_DELIMITER
        + b"BUFFER\nDATA: \x00ENDSCOPE\n\x01"
        + SCOPE_DELIMITER * 3
        + b"ENDSCOPE"
        + b"\n" * 5
        + SCOPE_DELIMITER
    )
    path = tmp_path / "s.bin"
    path.write_bytes(data)
    starts = _occurrences(data, SCOPE_DELIMITER)
    m = len(SCOPE_DELIMITER)
    for capacity in range(m + 1, len(data) + 2):
        chunks = _chunks(path, capacity)
        assert b"".join(c for _, c in chunks) == data
        boundaries = {off for off, _ in chunks[1:]}
        for s in starts:
            assert not any(s < b < s + m for b in boundaries), capacity


def test_capacity_below_delimiter_length_consumes_whole_window(tmp_path: Path):
    data = b"PROPERTIES\n" + SCOPE_DELIMITER * 2
    path = tmp_path / "s.bin"
    path.write_bytes(data)
    for capacity in range(1, len(SCOPE_DELIMITER) + 1):
        chunks = _chunks(path, capacity)
        assert b"".join(c for _, c in chunks) == data
        assert all(len(c) > 0 for _, c in chunks)


def test_empty_file_yields_no_chunk(tmp_path: Path):
    path = tmp_path / "empty.bin"
    path.write_bytes(b"")
    assert _chunks(path, 64) == []


def test_open_missing_file_raises_stream_error(tmp_path: Path):
    stream = ChunkedScopeStream(32)
    with pytest.raises(StreamError) as info:
        stream.open(tmp_path / "missing.das")
    assert info.value.code == E_IO_OPEN
    assert not stream.is_open


def test_invalid_capacity():
    with pytest.raises(ValueError):
        ChunkedScopeStream(0)
