"""Entity dataclasses produced by the reader and consumed by the writer.

Cross-entity references are plain indices into the owning graph's sequences
(``NO_ID`` marks an absent optional reference). Scene node children index
the same scene's nodes; joint children index the same skeleton's joints.
"""

from __future__ import annotations

import struct
import time
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from ..format.constants import (
    IDENTITY_ROTATION,
    IDENTITY_TRANSFORM,
    NO_ID,
    TEXTURE_TYPES,
    ZERO_VEC3,
    BufferType,
    Interpolation,
)

__all__ = [
    "Properties",
    "Buffer",
    "MeshPrimitive",
    "MorphTarget",
    "Model",
    "Keyframe",
    "Animation",
    "SceneNode",
    "Scene",
    "SkeletonJoint",
    "Skeleton",
]

Matrix4 = Tuple[float, ...]


def _f32s(values: Sequence[float]) -> Tuple[float, ...]:
    """Round ``values`` to the f32 precision they are stored with."""
    fmt = f"<{len(values)}f"
    try:
        return struct.unpack(fmt, struct.pack(fmt, *values))
    except (OverflowError, struct.error) as exc:
        raise ValueError(f"not representable as f32: {exc}") from exc


def _vector(values: Sequence[float], size: int) -> Tuple[float, ...]:
    out = _f32s(tuple(values))
    if len(out) != size:
        raise ValueError(f"vector needs {size} values, got {len(out)}")
    return out


def _matrix(values: Sequence[float]) -> Matrix4:
    out = _f32s(tuple(values))
    if len(out) != 16:
        raise ValueError(f"4x4 matrix needs 16 values, got {len(out)}")
    return out


def _indices(values: Sequence[int]) -> List[int]:
    return [int(v) for v in values]


@dataclass(slots=True)
class Properties:
    model: str = ""
    author: str = ""
    copyright: str = ""
    moddate: int = field(default_factory=lambda: int(time.time()))
    compression: bool = False
    default_scene: int = 0


@dataclass(slots=True, eq=False)
class Buffer:
    """Typed byte blob backed by one or more spans.

    ``data_len`` is always the sum of the span lengths. Buffers compare by
    type and concatenated content, not by span layout.
    """

    type: BufferType = BufferType.NONE
    spans: List[bytes | bytearray | memoryview] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.type = BufferType(int(self.type))
        self.spans = list(self.spans)

    @property
    def data_len(self) -> int:
        return sum(memoryview(s).nbytes for s in self.spans)

    @property
    def is_texture(self) -> bool:
        return bool(self.type & TEXTURE_TYPES)

    def tobytes(self) -> bytes:
        return b"".join(bytes(s) for s in self.spans)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Buffer):
            return NotImplemented
        return self.type == other.type and self.tobytes() == other.tobytes()


@dataclass(slots=True)
class MeshPrimitive:
    index_buffer_id: int = NO_ID
    index_buffer_offset: int = 0
    indices_count: int = 0
    vertex_buffer_id: int = NO_ID
    vertex_buffer_offset: int = 0
    vertex_normal_buffer_id: int = NO_ID
    vertex_normal_buffer_offset: int = 0
    texture_map_buffer_id: int = NO_ID
    texture_map_buffer_offset: int = 0
    texture_id: int = NO_ID
    morph_targets: List[int] = field(default_factory=list)
    morph_weights: List[float] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.morph_targets = _indices(self.morph_targets)
        self.morph_weights = list(_f32s(tuple(self.morph_weights)))


@dataclass(slots=True)
class MorphTarget:
    vertex_buffer_id: int = NO_ID
    vertex_buffer_offset: int = 0
    vertex_normal_buffer_id: int = NO_ID
    vertex_normal_buffer_offset: int = 0
    texture_map_buffer_id: int = NO_ID
    texture_map_buffer_offset: int = 0


@dataclass(slots=True)
class Model:
    name: str = ""
    primitives: List[int] = field(default_factory=list)
    transform: Matrix4 = IDENTITY_TRANSFORM

    def __post_init__(self) -> None:
        self.primitives = _indices(self.primitives)
        self.transform = _matrix(self.transform)


@dataclass(slots=True)
class Keyframe:
    timestamp: int = 0
    vertex_buffer_id: int = NO_ID
    vertex_buffer_offset: int = 0
    texture_map_buffer_id: int = NO_ID
    texture_map_buffer_offset: int = 0
    vertex_normal_buffer_id: int = NO_ID
    vertex_normal_buffer_offset: int = 0


@dataclass(slots=True)
class Animation:
    name: str = ""
    model: int = NO_ID
    length: int = 0
    interpolation: Interpolation = Interpolation.LINEAR
    keyframes: List[Keyframe] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.interpolation = Interpolation(int(self.interpolation))
        self.keyframes = list(self.keyframes)


@dataclass(slots=True)
class SceneNode:
    name: str = ""
    mesh: int = NO_ID
    skeleton: int = NO_ID
    children: List[int] = field(default_factory=list)
    transform: Matrix4 = IDENTITY_TRANSFORM

    def __post_init__(self) -> None:
        self.children = _indices(self.children)
        self.transform = _matrix(self.transform)


@dataclass(slots=True)
class Scene:
    name: str = ""
    nodes: List[SceneNode] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.nodes = list(self.nodes)

    def roots(self) -> List[int]:
        """Indices of nodes that are no other node's child."""
        children = {c for node in self.nodes for c in node.children}
        return [i for i in range(len(self.nodes)) if i not in children]


@dataclass(slots=True)
class SkeletonJoint:
    name: str = ""
    inverse_bind_pos: Matrix4 = IDENTITY_TRANSFORM
    children: List[int] = field(default_factory=list)
    scale: float = 1.0
    rotation: Tuple[float, float, float, float] = IDENTITY_ROTATION
    translation: Tuple[float, float, float] = ZERO_VEC3

    def __post_init__(self) -> None:
        self.inverse_bind_pos = _matrix(self.inverse_bind_pos)
        self.children = _indices(self.children)
        self.scale = _f32s((self.scale,))[0]
        self.rotation = _vector(self.rotation, 4)
        self.translation = _vector(self.translation, 3)


@dataclass(slots=True)
class Skeleton:
    name: str = ""
    parent: int = 0  # root joint
    joints: List[SkeletonJoint] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.joints = list(self.joints)
