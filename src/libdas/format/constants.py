"""Format constants shared by the stream, reader, writer and inspector."""

from __future__ import annotations

import enum

MAGIC_BYTES = b"DAS\x00"
SIGNATURE_SIZE = 16
SIGNATURE = MAGIC_BYTES + b"\x00" * (SIGNATURE_SIZE - len(MAGIC_BYTES))
# the 12 padding bytes are one repeated byte: NUL, newline or space
SIGNATURE_PADDINGS = frozenset(
    bytes([b]) * (SIGNATURE_SIZE - len(MAGIC_BYTES)) for b in b"\x00\n "
)

ENDSCOPE = b"ENDSCOPE"
SCOPE_DELIMITER = ENDSCOPE + b"\n"

DEFAULT_CHUNK_SIZE = 4096

NO_ID = 0xFFFFFFFF
INDEX_WIDTH = 4  # indices are u32

MAX_TOKEN_LENGTH = 64
MAX_STRING_LENGTH = 64 * 1024
MAX_HEX_STRING_LENGTH = 64 * 1024 * 1024

IDENTITY_TRANSFORM = (
    1.0, 0.0, 0.0, 0.0,
    0.0, 1.0, 0.0, 0.0,
    0.0, 0.0, 1.0, 0.0,
    0.0, 0.0, 0.0, 1.0,
)  # fmt: skip
IDENTITY_ROTATION = (0.0, 0.0, 0.0, 1.0)
ZERO_VEC3 = (0.0, 0.0, 0.0)


class BufferType(enum.IntFlag):
    NONE = 0
    VERTEX = 0x0001
    TEXTURE_MAP = 0x0002
    VERTEX_NORMAL = 0x0004
    INDICES = 0x0008
    TEXTURE_JPEG = 0x0010
    TEXTURE_PNG = 0x0020
    TEXTURE_TGA = 0x0040
    TEXTURE_BMP = 0x0080
    TEXTURE_PPM = 0x0100
    TEXTURE_RAW = 0x0200
    VERTEX_TANGENT = 0x0400
    KEYFRAME = 0x0800


TEXTURE_TYPES = (
    BufferType.TEXTURE_JPEG
    | BufferType.TEXTURE_PNG
    | BufferType.TEXTURE_TGA
    | BufferType.TEXTURE_BMP
    | BufferType.TEXTURE_PPM
    | BufferType.TEXTURE_RAW
)


class Interpolation(enum.IntEnum):
    LINEAR = 0
    STEP = 1
    CUBICSPLINE = 2


class ScopeKind(enum.Enum):
    PROPERTIES = "PROPERTIES"
    BUFFER = "BUFFER"
    MESHPRIMITIVE = "MESHPRIMITIVE"
    MORPHTARGET = "MORPHTARGET"
    MODEL = "MODEL"
    ANIMATION = "ANIMATION"
    KEYFRAME = "KEYFRAME"
    SCENE = "SCENE"
    NODE = "NODE"
    SKELETON = "SKELETON"
    JOINT = "JOINT"


SCOPE_NAMES: dict[str, ScopeKind] = {k.value: k for k in ScopeKind}
SCOPE_NAMES["MESH"] = ScopeKind.MODEL

# nested kind -> the only kind allowed as its innermost open parent
NESTED_SCOPES: dict[ScopeKind, ScopeKind] = {
    ScopeKind.KEYFRAME: ScopeKind.ANIMATION,
    ScopeKind.NODE: ScopeKind.SCENE,
    ScopeKind.JOINT: ScopeKind.SKELETON,
}

__all__ = [
    "MAGIC_BYTES",
    "SIGNATURE_SIZE",
    "SIGNATURE",
    "SIGNATURE_PADDINGS",
    "ENDSCOPE",
    "SCOPE_DELIMITER",
    "DEFAULT_CHUNK_SIZE",
    "NO_ID",
    "INDEX_WIDTH",
    "MAX_TOKEN_LENGTH",
    "MAX_STRING_LENGTH",
    "MAX_HEX_STRING_LENGTH",
    "IDENTITY_TRANSFORM",
    "IDENTITY_ROTATION",
    "ZERO_VEC3",
    "BufferType",
    "TEXTURE_TYPES",
    "Interpolation",
    "ScopeKind",
    "SCOPE_NAMES",
    "NESTED_SCOPES",
]
