"""Buffer span sources for assembly specs.

A span entry names exactly one source of bytes:

``data_hex``
    hex digits, whitespace ignored
``file`` / ``path``
    a file under the spec's directory, optionally windowed with
    ``offset`` / ``length``
``data``
    a UTF-8 string, bytes, or a list of byte values

An entry with no source is an empty span.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Callable, Dict

from ..format.constants import MAX_HEX_STRING_LENGTH
from .paths import safe_file_path

__all__ = ["SourceError", "read_file_window", "read_span_source"]

MAX_SOURCE_FILE_SIZE = 256 * 1024 * 1024


class SourceError(RuntimeError):
    pass


def _non_negative(entry: Dict[str, Any], key: str, default: Any) -> Any:
    value = entry.get(key, default)
    if value is default:
        return value
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise SourceError(f"{key} must be a non-negative integer")
    return value


def read_file_window(
    path: Path,
    offset: int = 0,
    length: int | None = None,
    max_size: int = MAX_SOURCE_FILE_SIZE,
) -> bytes:
    """Read ``length`` bytes at ``offset`` (to the end when ``None``)."""
    if not path.is_file():
        raise SourceError(f"File not found: {path}")
    size = path.stat().st_size
    if size > max_size:
        raise SourceError(f"File too large: {size}>{max_size}")
    if length is not None and offset + length > size:
        raise SourceError(f"window {offset}+{length} exceeds source of {size} bytes")
    with path.open("rb") as fh:
        fh.seek(offset)
        return fh.read() if length is None else fh.read(length)


def _hex_source(entry: Dict[str, Any], key: str, base_dir: Path) -> bytes:
    raw = entry[key]
    if not isinstance(raw, str):
        raise SourceError("data_hex must be string")
    digits = "".join(raw.split())
    if len(digits) > MAX_HEX_STRING_LENGTH:
        raise SourceError("hex string too long")
    if len(digits) % 2:
        raise SourceError("hex string must have even length")
    try:
        return bytes.fromhex(digits)
    except ValueError as e:
        raise SourceError(f"invalid hex: {e}") from e


def _file_source(entry: Dict[str, Any], key: str, base_dir: Path) -> bytes:
    rel = entry[key]
    if not isinstance(rel, str):
        raise SourceError(f"{key} path must be string")
    try:
        resolved = safe_file_path(base_dir, rel)
    except ValueError as e:
        raise SourceError(str(e)) from e
    return read_file_window(
        resolved, _non_negative(entry, "offset", 0), _non_negative(entry, "length", None)
    )


def _inline_source(entry: Dict[str, Any], key: str, base_dir: Path) -> bytes:
    value = entry[key]
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, list) and all(isinstance(b, int) for b in value):
        try:
            return bytes(value)
        except ValueError as e:
            raise SourceError(f"invalid byte list: {e}") from e
    raise SourceError("data must be str, bytes or a list of byte values")


_SOURCES: Dict[str, Callable[[Dict[str, Any], str, Path], bytes]] = {
    "data_hex": _hex_source,
    "file": _file_source,
    "path": _file_source,
    "data": _inline_source,
}


def read_span_source(entry: Dict[str, Any], base_dir: Path) -> bytes:
    present = [key for key in _SOURCES if entry.get(key) is not None]
    if not present:
        return b""
    if len(present) > 1:
        raise SourceError(f"Multiple data sources: {present}")
    key = present[0]
    return _SOURCES[key](entry, key, base_dir)
