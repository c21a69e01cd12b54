"""Scope grammar: stateless tokenizer helpers and the per-scope field schema.

A DAS file is ``[signature][scope]*``. Each scope is a name line, a run of
``KEY: value`` lines and nested scopes, and a closing ``ENDSCOPE`` line.
Field values are either a quoted UTF-8 string, a fixed-width little-endian
binary value, or (for ``DATA`` only) a raw payload whose length was declared
by a preceding ``DATALEN`` field.

The functions here operate on a ``(buffer, pos, end)`` window and never
consume input themselves; the reader owns the cursor.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Tuple

from .constants import ENDSCOPE, ScopeKind

__all__ = [
    "TokenKind",
    "ValueKind",
    "FieldSpec",
    "SCOPE_FIELDS",
    "skip_whitespace",
    "extract_word",
    "classify_token",
    "find_string_end",
    "field_spec",
]

_WHITESPACE = frozenset(b" \t\r\n")
_NEWLINE = 0x0A
_COLON = 0x3A
_QUOTE = 0x22
_ARRAY_START = 0x5B
_ARRAY_END = 0x5D


class TokenKind(enum.Enum):
    SCOPE_START = enum.auto()
    SCOPE_END = enum.auto()
    KEY = enum.auto()
    STRING_DELIMITER = enum.auto()
    ARRAY_START = enum.auto()
    ARRAY_END = enum.auto()
    NUMERIC_LITERAL = enum.auto()
    INVALID = enum.auto()


def skip_whitespace(buf, pos: int, end: int) -> Tuple[int, int]:
    """Skip spaces, tabs, carriage returns and newlines.

    Returns ``(new_pos, newlines_skipped)``.
    """
    newlines = 0
    while pos < end and buf[pos] in _WHITESPACE:
        if buf[pos] == _NEWLINE:
            newlines += 1
        pos += 1
    return pos, newlines


def extract_word(buf, pos: int, end: int) -> int:
    """Return the index one past the word starting at ``pos``.

    A word ends at whitespace or at a key-value separator. When neither is
    found inside the window ``end`` is returned.
    """
    while pos < end:
        b = buf[pos]
        if b in _WHITESPACE or b == _COLON:
            return pos
        pos += 1
    return end


def classify_token(word: bytes, terminator: int | None) -> TokenKind:
    if not word:
        return TokenKind.INVALID
    if word == ENDSCOPE:
        return TokenKind.SCOPE_END
    first = word[0]
    if first == _QUOTE:
        return TokenKind.STRING_DELIMITER
    if first == _ARRAY_START:
        return TokenKind.ARRAY_START
    if first == _ARRAY_END:
        return TokenKind.ARRAY_END
    if word.isdigit():
        return TokenKind.NUMERIC_LITERAL
    if not (word.isalpha() and word.isupper()):
        return TokenKind.INVALID
    if terminator == _COLON:
        return TokenKind.KEY
    return TokenKind.SCOPE_START


def find_string_end(buf, pos: int, end: int) -> int:
    """Index of the closing quote at or after ``pos``, or -1."""
    return buf.find(b'"', pos, end)


class ValueKind(enum.Enum):
    STRING = enum.auto()
    U8 = enum.auto()
    BOOL = enum.auto()
    U32 = enum.auto()
    U64 = enum.auto()
    F32 = enum.auto()
    VEC3 = enum.auto()
    QUAT = enum.auto()
    MAT4 = enum.auto()
    COUNT = enum.auto()  # u32 element count of a following array
    U32_ARRAY = enum.auto()
    F32_ARRAY = enum.auto()
    BLOB = enum.auto()  # raw bytes, element count from DATALEN


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """One ``KEY: value`` line of a scope.

    For ``COUNT`` fields ``attr`` names the array attribute whose length is
    written. Array fields name their count field in ``count_key``.
    ``optional`` fields are omitted by the writer when they hold the zero
    value.
    """

    key: str
    attr: str
    kind: ValueKind
    count_key: str | None = None
    optional: bool = False


def _fields(*specs: FieldSpec) -> Dict[str, FieldSpec]:
    return {s.key: s for s in specs}


_S = ValueKind

SCOPE_FIELDS: Dict[ScopeKind, Dict[str, FieldSpec]] = {
    ScopeKind.PROPERTIES: _fields(
        FieldSpec("MODEL", "model", _S.STRING),
        FieldSpec("AUTHOR", "author", _S.STRING),
        FieldSpec("COPYRIGHT", "copyright", _S.STRING),
        FieldSpec("MODDATE", "moddate", _S.U64),
        FieldSpec("COMPRESSION", "compression", _S.BOOL),
        FieldSpec("DEFAULTSCENE", "default_scene", _S.U32, optional=True),
    ),
    ScopeKind.BUFFER: _fields(
        FieldSpec("BUFFERTYPE", "type", _S.U32),
        FieldSpec("DATALEN", "data", _S.COUNT),
        FieldSpec("DATA", "data", _S.BLOB, count_key="DATALEN"),
    ),
    ScopeKind.MESHPRIMITIVE: _fields(
        FieldSpec("INDEXBUFFERID", "index_buffer_id", _S.U32),
        FieldSpec("INDEXBUFFEROFFSET", "index_buffer_offset", _S.U32),
        FieldSpec("INDICESCOUNT", "indices_count", _S.U32),
        FieldSpec("VERTEXBUFFERID", "vertex_buffer_id", _S.U32),
        FieldSpec("VERTEXBUFFEROFFSET", "vertex_buffer_offset", _S.U32),
        FieldSpec("VERTEXNORMALBUFFERID", "vertex_normal_buffer_id", _S.U32),
        FieldSpec(
            "VERTEXNORMALBUFFEROFFSET", "vertex_normal_buffer_offset", _S.U32
        ),
        FieldSpec("TEXTUREMAPBUFFERID", "texture_map_buffer_id", _S.U32),
        FieldSpec(
            "TEXTUREMAPBUFFEROFFSET", "texture_map_buffer_offset", _S.U32
        ),
        FieldSpec("TEXTUREID", "texture_id", _S.U32),
        FieldSpec("MORPHTARGETCOUNT", "morph_targets", _S.COUNT),
        FieldSpec(
            "MORPHTARGETS",
            "morph_targets",
            _S.U32_ARRAY,
            count_key="MORPHTARGETCOUNT",
        ),
        FieldSpec(
            "MORPHWEIGHTS",
            "morph_weights",
            _S.F32_ARRAY,
            count_key="MORPHTARGETCOUNT",
        ),
    ),
    ScopeKind.MORPHTARGET: _fields(
        FieldSpec("VERTEXBUFFERID", "vertex_buffer_id", _S.U32),
        FieldSpec("VERTEXBUFFEROFFSET", "vertex_buffer_offset", _S.U32),
        FieldSpec("VERTEXNORMALBUFFERID", "vertex_normal_buffer_id", _S.U32),
        FieldSpec(
            "VERTEXNORMALBUFFEROFFSET", "vertex_normal_buffer_offset", _S.U32
        ),
        FieldSpec("TEXTUREMAPBUFFERID", "texture_map_buffer_id", _S.U32),
        FieldSpec(
            "TEXTUREMAPBUFFEROFFSET", "texture_map_buffer_offset", _S.U32
        ),
    ),
    ScopeKind.MODEL: _fields(
        FieldSpec("NAME", "name", _S.STRING),
        FieldSpec("PRIMITIVECOUNT", "primitives", _S.COUNT),
        FieldSpec(
            "PRIMITIVES", "primitives", _S.U32_ARRAY, count_key="PRIMITIVECOUNT"
        ),
        FieldSpec("TRANSFORM", "transform", _S.MAT4),
    ),
    ScopeKind.ANIMATION: _fields(
        FieldSpec("NAME", "name", _S.STRING),
        FieldSpec("MODEL", "model", _S.U32),
        FieldSpec("LENGTH", "length", _S.U32),
        FieldSpec("INTERPOLATION", "interpolation", _S.U8),
    ),
    ScopeKind.KEYFRAME: _fields(
        FieldSpec("TIMESTAMP", "timestamp", _S.U32),
        FieldSpec("VERTEXBUFFERID", "vertex_buffer_id", _S.U32),
        FieldSpec("VERTEXBUFFEROFFSET", "vertex_buffer_offset", _S.U32),
        FieldSpec("TEXTUREMAPBUFFERID", "texture_map_buffer_id", _S.U32),
        FieldSpec(
            "TEXTUREMAPBUFFEROFFSET", "texture_map_buffer_offset", _S.U32
        ),
        FieldSpec("VERTEXNORMALBUFFERID", "vertex_normal_buffer_id", _S.U32),
        FieldSpec(
            "VERTEXNORMALBUFFEROFFSET", "vertex_normal_buffer_offset", _S.U32
        ),
    ),
    ScopeKind.SCENE: _fields(
        FieldSpec("NAME", "name", _S.STRING),
    ),
    ScopeKind.NODE: _fields(
        FieldSpec("NAME", "name", _S.STRING),
        FieldSpec("MESH", "mesh", _S.U32),
        FieldSpec("SKELETON", "skeleton", _S.U32),
        FieldSpec("CHILDRENCOUNT", "children", _S.COUNT),
        FieldSpec(
            "CHILDREN", "children", _S.U32_ARRAY, count_key="CHILDRENCOUNT"
        ),
        FieldSpec("TRANSFORM", "transform", _S.MAT4),
    ),
    ScopeKind.SKELETON: _fields(
        FieldSpec("NAME", "name", _S.STRING),
        FieldSpec("PARENT", "parent", _S.U32),
    ),
    ScopeKind.JOINT: _fields(
        FieldSpec("NAME", "name", _S.STRING),
        FieldSpec("INVERSEBINDPOS", "inverse_bind_pos", _S.MAT4),
        FieldSpec("CHILDRENCOUNT", "children", _S.COUNT),
        FieldSpec(
            "CHILDREN", "children", _S.U32_ARRAY, count_key="CHILDRENCOUNT"
        ),
        FieldSpec("SCALE", "scale", _S.F32),
        FieldSpec("ROTATION", "rotation", _S.QUAT),
        FieldSpec("TRANSLATION", "translation", _S.VEC3),
    ),
}


def field_spec(kind: ScopeKind, key: str) -> FieldSpec | None:
    return SCOPE_FIELDS[kind].get(key)
