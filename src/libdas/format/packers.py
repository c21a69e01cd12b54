"""Pure binary packing functions for DAS field values.

Canonical layout: little-endian, fixed width per value kind. All functions
are side-effect free and validate sizes.
"""

from __future__ import annotations

import struct
from typing import Any, Dict, Sequence

from .constants import (
    ENDSCOPE,
    MAGIC_BYTES,
    SIGNATURE,
    SIGNATURE_PADDINGS,
    SIGNATURE_SIZE,
)
from .errors import E_SYNTAX, WriterError
from .grammar import ValueKind

__all__ = [
    "value_width",
    "pack_value",
    "unpack_value",
    "pack_string",
    "pack_field",
    "pack_field_prefix",
    "pack_scope_start",
    "pack_scope_end",
    "pack_signature",
    "parse_signature",
]

_FORMATS: Dict[ValueKind, str] = {
    ValueKind.U8: "<B",
    ValueKind.BOOL: "<B",
    ValueKind.U32: "<I",
    ValueKind.COUNT: "<I",
    ValueKind.U64: "<Q",
    ValueKind.F32: "<f",
    ValueKind.VEC3: "<3f",
    ValueKind.QUAT: "<4f",
    ValueKind.MAT4: "<16f",
}

_ELEMENT_WIDTH: Dict[ValueKind, int] = {
    ValueKind.U32_ARRAY: 4,
    ValueKind.F32_ARRAY: 4,
    ValueKind.BLOB: 1,
}


def value_width(kind: ValueKind, count: int = 1) -> int:
    """Byte width of a binary value; arrays scale with ``count``."""
    if kind in _ELEMENT_WIDTH:
        return _ELEMENT_WIDTH[kind] * count
    fmt = _FORMATS.get(kind)
    if fmt is None:
        raise ValueError(f"{kind.name} has no fixed width")
    return struct.calcsize(fmt)


def pack_value(kind: ValueKind, value: Any) -> bytes:
    if kind is ValueKind.STRING:
        return pack_string(value)
    if kind is ValueKind.BLOB:
        return bytes(value)
    try:
        if kind is ValueKind.U32_ARRAY:
            return struct.pack(f"<{len(value)}I", *value)
        if kind is ValueKind.F32_ARRAY:
            return struct.pack(f"<{len(value)}f", *value)
        fmt = _FORMATS[kind]
        if kind in (ValueKind.VEC3, ValueKind.QUAT, ValueKind.MAT4):
            return struct.pack(fmt, *value)
        if kind is ValueKind.F32:
            return struct.pack(fmt, value)
        return struct.pack(fmt, int(value))
    except struct.error as exc:
        raise WriterError(
            E_SYNTAX, f"Cannot pack {value!r} as {kind.name}: {exc}"
        ) from exc


def unpack_value(kind: ValueKind, raw: bytes, count: int = 1) -> Any:
    if kind is ValueKind.U32_ARRAY:
        return list(struct.unpack(f"<{count}I", raw))
    if kind is ValueKind.F32_ARRAY:
        return list(struct.unpack(f"<{count}f", raw))
    if kind is ValueKind.BLOB:
        return bytes(raw)
    values = struct.unpack(_FORMATS[kind], raw)
    if kind in (ValueKind.VEC3, ValueKind.QUAT, ValueKind.MAT4):
        return tuple(values)
    if kind is ValueKind.BOOL:
        return bool(values[0])
    return values[0]


def pack_string(value: str) -> bytes:
    if '"' in value:
        raise WriterError(
            E_SYNTAX, f"String values cannot contain quotes: {value!r}"
        )
    return b'"' + value.encode("utf-8") + b'"'


def pack_field_prefix(key: str) -> bytes:
    return key.encode("ascii") + b": "


def pack_field(key: str, kind: ValueKind, value: Any) -> bytes:
    return pack_field_prefix(key) + pack_value(kind, value) + b"\n"


def pack_scope_start(name: str) -> bytes:
    return name.encode("ascii") + b"\n"


def pack_scope_end() -> bytes:
    return ENDSCOPE + b"\n"


def pack_signature() -> bytes:
    out = SIGNATURE
    if len(out) != SIGNATURE_SIZE:  # pragma: no cover
        raise WriterError(E_SYNTAX, f"Signature size mismatch: {len(out)}")
    return out


def parse_signature(raw: bytes) -> Dict[str, Any]:
    magic = raw[: len(MAGIC_BYTES)]
    padding = raw[len(MAGIC_BYTES) : SIGNATURE_SIZE]
    return {
        "magic": magic.hex(),
        "magic_ok": magic == MAGIC_BYTES,
        "padding_ok": len(raw) == SIGNATURE_SIZE
        and bytes(padding) in SIGNATURE_PADDINGS,
    }

