"""Structural validation of a populated :class:`EntityGraph`.

Phases, in order:
 1. buffers: primitive and morph-target buffer references, offsets, and
    vertex regions sized by the highest index each primitive uses
 2. models: primitive indices, unused primitives
 3. scenes: node references, recursive nodes, duplicate children/objects
 4. skeletons: joint references, recursive joints, unreachable joints
 5. morph targets: references, attribute layout, weight counts
 6. animations: model references, buffer references, keyframe order
 7. buffers referenced by nothing

Every finding is accumulated; nothing aborts early. Errors mark a graph
unsafe to consume, warnings are advisory.
"""

from __future__ import annotations

import struct
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Sequence, Set

from ..format.constants import INDEX_WIDTH, NO_ID
from .entities import MeshPrimitive, MorphTarget
from .graph import EntityGraph

__all__ = [
    "ValidationFinding",
    "ValidationReport",
    "Validator",
    "validate_graph",
    "ERROR",
    "WARNING",
]

ERROR = "error"
WARNING = "warning"

E_REF = "E_REF"
E_BOUNDS = "E_BOUNDS"
E_RECURSIVE_NODE = "E_RECURSIVE_NODE"
E_RECURSIVE_JOINT = "E_RECURSIVE_JOINT"
E_MORPH_LAYOUT = "E_MORPH_LAYOUT"
E_MORPH_WEIGHTS = "E_MORPH_WEIGHTS"
E_DEFAULT_SCENE = "E_DEFAULT_SCENE"
W_UNUSED_BUFFER = "W_UNUSED_BUFFER"
W_UNUSED_PRIMITIVE = "W_UNUSED_PRIMITIVE"
W_UNUSED_MORPH_TARGET = "W_UNUSED_MORPH_TARGET"
W_UNUSED_JOINT = "W_UNUSED_JOINT"
W_DUPLICATE_CHILD = "W_DUPLICATE_CHILD"
W_DUPLICATE_OBJECT = "W_DUPLICATE_OBJECT"
W_TEXTURE_TYPE = "W_TEXTURE_TYPE"
W_KEYFRAME_ORDER = "W_KEYFRAME_ORDER"
W_INDICES_DISCONTINUOUS = "W_INDICES_DISCONTINUOUS"

# bytes per referenced vertex: vec3 positions and normals, vec2 texture coords
VEC3_WIDTH = 12
VEC2_WIDTH = 8


@dataclass(slots=True)
class ValidationFinding:
    code: str
    message: str
    path: str = ""
    severity: str = ERROR

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(slots=True)
class ValidationReport:
    errors: List[ValidationFinding] = field(default_factory=list)
    warnings: List[ValidationFinding] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def codes(self) -> Set[str]:
        return {f.code for f in self.errors + self.warnings}

    def add(self, finding: ValidationFinding) -> None:
        if finding.severity == WARNING:
            self.warnings.append(finding)
        else:
            self.errors.append(finding)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def _exists(index: int, count: int) -> bool:
    return 0 <= index < count


def _find_cycles(
    children: Sequence[Sequence[int]], roots: Sequence[int]
) -> tuple[List[tuple[int, int]], Set[int]]:
    """Iterative three-colour DFS.

    Returns the back edges ``(parent, child)`` found, one per cycle entry
    point, and the set of nodes reached from ``roots``. Out-of-range
    children are skipped; they are reported separately.
    """
    white, gray, black = 0, 1, 2
    n = len(children)
    colour = [white] * n
    back_edges: List[tuple[int, int]] = []

    def visit(start: int) -> None:
        colour[start] = gray
        stack = [(start, iter(children[start]))]
        while stack:
            node, it = stack[-1]
            for child in it:
                if not 0 <= child < n:
                    continue
                if colour[child] == gray:
                    back_edges.append((node, child))
                elif colour[child] == white:
                    colour[child] = gray
                    stack.append((child, iter(children[child])))
                    break
            else:
                colour[node] = black
                stack.pop()

    for root in roots:
        if 0 <= root < n and colour[root] == white:
            visit(root)
    reached = {i for i in range(n) if colour[i] == black}
    # nodes only reachable through a cycle have no root
    for i in range(n):
        if colour[i] == white:
            visit(i)
    return back_edges, reached


class Validator:
    def __init__(self, graph: EntityGraph) -> None:
        self.graph = graph
        self.report = ValidationReport()
        self._used_buffers: Set[int] = set()

    def _err(self, code: str, message: str, path: str) -> None:
        self.report.add(ValidationFinding(code, message, path, ERROR))

    def _warn(self, code: str, message: str, path: str) -> None:
        self.report.add(ValidationFinding(code, message, path, WARNING))

    def validate(self) -> ValidationReport:
        self._check_buffer_refs()
        self._check_models()
        self._check_scenes()
        self._check_skeletons()
        self._check_morph_targets()
        self._check_animations()
        self._check_unused_buffers()
        return self.report

    # Helpers ------------------------------------------------------------------
    def _buffer_ref(
        self,
        buffer_id: int,
        offset: int,
        path: str,
        *,
        required: bool = False,
        region: int = 0,
    ) -> None:
        """Check that ``buffer_id`` exists and ``offset`` lies inside it.

        ``region`` is the number of bytes that must fit from ``offset``.
        """
        if buffer_id == NO_ID:
            if required:
                self._err(E_REF, "Missing required buffer reference", path)
            return
        buffers = self.graph.buffers
        if not _exists(buffer_id, len(buffers)):
            self._err(
                E_REF,
                f"Buffer {buffer_id} does not exist (have {len(buffers)})",
                path,
            )
            return
        self._used_buffers.add(buffer_id)
        length = buffers[buffer_id].data_len
        if not 0 <= offset < length:
            self._err(
                E_BOUNDS,
                f"Offset {offset} outside buffer {buffer_id} of {length} bytes",
                path,
            )
        elif offset + region > length:
            self._err(
                E_BOUNDS,
                f"Region {offset}+{region} exceeds buffer {buffer_id} "
                f"of {length} bytes",
                path,
            )

    def _vertex_count(self, prim: MeshPrimitive, path: str) -> int:
        """Highest index + 1 in the primitive's index region.

        0 when the region cannot be read; its reference errors are reported
        separately. Warns when the sorted indices skip a value.
        """
        buffers = self.graph.buffers
        count = prim.indices_count
        if count <= 0 or not _exists(prim.index_buffer_id, len(buffers)):
            return 0
        data = buffers[prim.index_buffer_id].tobytes()
        offset = prim.index_buffer_offset
        if offset < 0 or offset + count * INDEX_WIDTH > len(data):
            return 0
        used = sorted(set(struct.unpack_from(f"<{count}I", data, offset)))
        if any(b - a > 1 for a, b in zip(used, used[1:])):
            self._warn(
                W_INDICES_DISCONTINUOUS,
                "Indices do not form a continuous range",
                f"{path}.index_buffer",
            )
        return used[-1] + 1

    def _vertex_refs(
        self, owner: MeshPrimitive | MorphTarget, path: str, vertices: int
    ) -> None:
        self._buffer_ref(
            owner.vertex_buffer_id,
            owner.vertex_buffer_offset,
            f"{path}.vertex_buffer",
            required=True,
            region=vertices * VEC3_WIDTH,
        )
        self._buffer_ref(
            owner.vertex_normal_buffer_id,
            owner.vertex_normal_buffer_offset,
            f"{path}.vertex_normal_buffer",
            region=vertices * VEC3_WIDTH,
        )
        self._buffer_ref(
            owner.texture_map_buffer_id,
            owner.texture_map_buffer_offset,
            f"{path}.texture_map_buffer",
            region=vertices * VEC2_WIDTH,
        )

    # Phases -------------------------------------------------------------------
    def _check_buffer_refs(self) -> None:
        buffers = self.graph.buffers
        targets = self.graph.morph_targets
        # morph target -> most vertices any primitive using it addresses
        target_vertices: Dict[int, int] = {}
        for i, p in enumerate(self.graph.primitives):
            path = f"primitives[{i}]"
            self._buffer_ref(
                p.index_buffer_id,
                p.index_buffer_offset,
                f"{path}.index_buffer",
                required=True,
                region=p.indices_count * INDEX_WIDTH,
            )
            vertices = self._vertex_count(p, path)
            self._vertex_refs(p, path, vertices)
            for t in p.morph_targets:
                if _exists(t, len(targets)):
                    target_vertices[t] = max(target_vertices.get(t, 0), vertices)
            if p.texture_id != NO_ID:
                if not _exists(p.texture_id, len(buffers)):
                    self._err(
                        E_REF,
                        f"Texture buffer {p.texture_id} does not exist",
                        f"{path}.texture_id",
                    )
                else:
                    self._used_buffers.add(p.texture_id)
                    if not buffers[p.texture_id].is_texture:
                        self._warn(
                            W_TEXTURE_TYPE,
                            f"Buffer {p.texture_id} is not a texture buffer",
                            f"{path}.texture_id",
                        )
        for i, t in enumerate(targets):
            self._vertex_refs(t, f"morph_targets[{i}]", target_vertices.get(i, 0))

    def _check_models(self) -> None:
        count = len(self.graph.primitives)
        used: Set[int] = set()
        for i, m in enumerate(self.graph.models):
            for j, prim in enumerate(m.primitives):
                if not _exists(prim, count):
                    self._err(
                        E_REF,
                        f"Primitive {prim} does not exist (have {count})",
                        f"models[{i}].primitives[{j}]",
                    )
                else:
                    used.add(prim)
        for i in range(count):
            if i not in used:
                self._warn(
                    W_UNUSED_PRIMITIVE,
                    "Primitive is not used by any model",
                    f"primitives[{i}]",
                )

    def _check_scenes(self) -> None:
        graph = self.graph
        for s, scene in enumerate(graph.scenes):
            n = len(scene.nodes)
            child_uses: Counter[int] = Counter()
            placed: Counter[int] = Counter()
            for j, node in enumerate(scene.nodes):
                path = f"scenes[{s}].nodes[{j}]"
                if node.mesh != NO_ID:
                    if not _exists(node.mesh, len(graph.models)):
                        self._err(
                            E_REF,
                            f"Model {node.mesh} does not exist",
                            f"{path}.mesh",
                        )
                    else:
                        placed[node.mesh] += 1
                if node.skeleton != NO_ID and not _exists(
                    node.skeleton, len(graph.skeletons)
                ):
                    self._err(
                        E_REF,
                        f"Skeleton {node.skeleton} does not exist",
                        f"{path}.skeleton",
                    )
                for c in node.children:
                    if not _exists(c, n):
                        self._err(
                            E_REF,
                            f"Child node {c} does not exist (have {n})",
                            f"{path}.children",
                        )
                    else:
                        child_uses[c] += 1
            for c, uses in sorted(child_uses.items()):
                if uses > 1:
                    self._warn(
                        W_DUPLICATE_CHILD,
                        f"Node {c} is listed as a child {uses} times",
                        f"scenes[{s}].nodes[{c}]",
                    )
            for m, uses in sorted(placed.items()):
                if uses > 1:
                    self._warn(
                        W_DUPLICATE_OBJECT,
                        f"Model {m} is placed by {uses} nodes",
                        f"scenes[{s}]",
                    )
            back_edges, _ = _find_cycles(
                [node.children for node in scene.nodes], scene.roots()
            )
            for parent, child in back_edges:
                self._err(
                    E_RECURSIVE_NODE,
                    f"Node {parent} recursively references ancestor {child}",
                    f"scenes[{s}].nodes[{parent}].children",
                )
        default = graph.properties.default_scene
        if (graph.scenes or default) and not _exists(
            default, len(graph.scenes)
        ):
            self._err(
                E_DEFAULT_SCENE,
                f"Default scene {default} does not exist "
                f"(have {len(graph.scenes)})",
                "properties.default_scene",
            )

    def _check_skeletons(self) -> None:
        for k, skel in enumerate(self.graph.skeletons):
            n = len(skel.joints)
            if not n:
                continue
            if not _exists(skel.parent, n):
                self._err(
                    E_REF,
                    f"Root joint {skel.parent} does not exist (have {n})",
                    f"skeletons[{k}].parent",
                )
            for j, joint in enumerate(skel.joints):
                for c in joint.children:
                    if not _exists(c, n):
                        self._err(
                            E_REF,
                            f"Child joint {c} does not exist (have {n})",
                            f"skeletons[{k}].joints[{j}].children",
                        )
            back_edges, reached = _find_cycles(
                [joint.children for joint in skel.joints], [skel.parent]
            )
            for parent, child in back_edges:
                self._err(
                    E_RECURSIVE_JOINT,
                    f"Joint {parent} recursively references ancestor {child}",
                    f"skeletons[{k}].joints[{parent}].children",
                )
            for j in range(n):
                if j not in reached:
                    self._warn(
                        W_UNUSED_JOINT,
                        "Joint is not reachable from the root joint",
                        f"skeletons[{k}].joints[{j}]",
                    )

    def _check_morph_targets(self) -> None:
        targets = self.graph.morph_targets
        used: Set[int] = set()
        for i, p in enumerate(self.graph.primitives):
            path = f"primitives[{i}]"
            if p.morph_weights and len(p.morph_weights) != len(p.morph_targets):
                self._err(
                    E_MORPH_WEIGHTS,
                    f"{len(p.morph_weights)} weights for "
                    f"{len(p.morph_targets)} morph targets",
                    f"{path}.morph_weights",
                )
            has_normals = p.vertex_normal_buffer_id != NO_ID
            has_uvs = p.texture_map_buffer_id != NO_ID
            for j, t in enumerate(p.morph_targets):
                if not _exists(t, len(targets)):
                    self._err(
                        E_REF,
                        f"Morph target {t} does not exist",
                        f"{path}.morph_targets[{j}]",
                    )
                    continue
                used.add(t)
                target = targets[t]
                if (target.vertex_normal_buffer_id != NO_ID) != has_normals or (
                    target.texture_map_buffer_id != NO_ID
                ) != has_uvs:
                    self._err(
                        E_MORPH_LAYOUT,
                        f"Morph target {t} attribute layout differs "
                        "from the primitive",
                        f"{path}.morph_targets[{j}]",
                    )
        for t in range(len(targets)):
            if t not in used:
                self._warn(
                    W_UNUSED_MORPH_TARGET,
                    "Morph target is not used by any primitive",
                    f"morph_targets[{t}]",
                )

    def _check_animations(self) -> None:
        models = len(self.graph.models)
        for a, anim in enumerate(self.graph.animations):
            path = f"animations[{a}]"
            if anim.model != NO_ID and not _exists(anim.model, models):
                self._err(
                    E_REF, f"Model {anim.model} does not exist", f"{path}.model"
                )
            previous = None
            for k, kf in enumerate(anim.keyframes):
                kpath = f"{path}.keyframes[{k}]"
                self._buffer_ref(
                    kf.vertex_buffer_id,
                    kf.vertex_buffer_offset,
                    f"{kpath}.vertex_buffer",
                )
                self._buffer_ref(
                    kf.texture_map_buffer_id,
                    kf.texture_map_buffer_offset,
                    f"{kpath}.texture_map_buffer",
                )
                self._buffer_ref(
                    kf.vertex_normal_buffer_id,
                    kf.vertex_normal_buffer_offset,
                    f"{kpath}.vertex_normal_buffer",
                )
                if previous is not None and kf.timestamp < previous:
                    self._warn(
                        W_KEYFRAME_ORDER,
                        f"Timestamp {kf.timestamp} precedes {previous}",
                        kpath,
                    )
                previous = kf.timestamp

    def _check_unused_buffers(self) -> None:
        for i in range(len(self.graph.buffers)):
            if i not in self._used_buffers:
                self._warn(
                    W_UNUSED_BUFFER,
                    "Buffer is not referenced by any entity",
                    f"buffers[{i}]",
                )


def validate_graph(graph: EntityGraph) -> ValidationReport:
    return Validator(graph).validate()
