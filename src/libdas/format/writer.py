"""Scope writer emitting the same grammar the reader consumes.

Field emission is driven by the per-scope field schema in
:mod:`libdas.format.grammar`:

* strings are omitted when empty;
* arrays are omitted when empty (their count is still written);
* ``optional`` fields are omitted when zero;
* every other field (ids, offsets, counts, transforms) is always written.

The writer performs no layout: offsets stored in entities are written as
given. The signature is written as a zero placeholder on open and patched in
place on :meth:`ScopeWriter.close`; that is the only rewind, so an
interrupted write never leaves a readable file behind.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, BinaryIO, Callable, List, Sequence, Tuple

from ..logging import get_logger, section
from ..model.entities import (
    Animation,
    Buffer,
    MeshPrimitive,
    Model,
    MorphTarget,
    Properties,
    Scene,
    Skeleton,
)
from ..model.graph import EntityGraph
from ..reporting import task
from .constants import SIGNATURE_SIZE, ScopeKind
from .errors import E_COUNT_MISMATCH, E_IO_OPEN, E_IO_WRITE, WriterError
from .grammar import SCOPE_FIELDS, ValueKind
from .packers import (
    pack_field,
    pack_field_prefix,
    pack_scope_end,
    pack_scope_start,
    pack_signature,
)

__all__ = ["ScopeWriter", "write_graph"]

_ARRAY_KINDS = (ValueKind.U32_ARRAY, ValueKind.F32_ARRAY)


class ScopeWriter:
    def __init__(
        self,
        path: str | Path | None = None,
        *,
        placeholder_signature: bool = True,
    ) -> None:
        self.placeholder_signature = placeholder_signature
        self.path: Path | None = None
        self._file: BinaryIO | None = None
        self._depth = 0
        self.bytes_written = 0
        self.scope_count = 0
        if path is not None:
            self.open(path)

    # Lifecycle ----------------------------------------------------------------
    def open(self, path: str | Path) -> None:
        self.close()
        p = Path(path)
        try:
            self._file = p.open("wb")
        except OSError as exc:
            raise WriterError(
                E_IO_OPEN,
                f"Cannot create {p}: {exc.strerror or exc}",
                {"path": str(p)},
            ) from exc
        self.path = p
        self._depth = 0
        self.bytes_written = 0
        self.scope_count = 0
        if self.placeholder_signature:
            self._write(b"\x00" * SIGNATURE_SIZE)
        else:
            self._write(pack_signature())

    def close(self) -> None:
        if self._file is None:
            return
        f, self._file = self._file, None
        try:
            if self._depth:
                raise WriterError(
                    E_IO_WRITE,
                    f"Closing with {self._depth} unterminated scope(s)",
                    {"path": str(self.path)},
                )
            if self.placeholder_signature:
                f.seek(0)
                f.write(pack_signature())
        finally:
            f.close()

    def __enter__(self) -> "ScopeWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None and self._file is not None:
            # leave the placeholder signature in place
            self._file.close()
            self._file = None
            return
        self.close()

    # Low level ----------------------------------------------------------------
    def _write(self, data: bytes | bytearray | memoryview) -> None:
        if self._file is None:
            raise WriterError(E_IO_WRITE, "Writer is not open")
        try:
            n = self._file.write(data)
        except OSError as exc:
            raise WriterError(
                E_IO_WRITE,
                f"Write failed at byte offset {self.bytes_written}: {exc}",
                {"path": str(self.path), "offset": self.bytes_written},
            ) from exc
        self.bytes_written += n

    def _begin(self, kind: ScopeKind) -> None:
        self._write(pack_scope_start(kind.value))
        self._depth += 1
        self.scope_count += 1

    def _end(self) -> None:
        self._write(pack_scope_end())
        self._depth -= 1

    def _write_fields(self, kind: ScopeKind, entity: Any) -> None:
        for spec in SCOPE_FIELDS[kind].values():
            value = getattr(entity, spec.attr)
            if spec.kind is ValueKind.COUNT:
                self._write(pack_field(spec.key, spec.kind, len(value)))
                continue
            if spec.kind is ValueKind.STRING and not value:
                continue
            if spec.kind in _ARRAY_KINDS and not value:
                continue
            if spec.optional and not value:
                continue
            self._write(pack_field(spec.key, spec.kind, value))

    # Scopes -------------------------------------------------------------------
    def write_properties(self, props: Properties) -> None:
        self._begin(ScopeKind.PROPERTIES)
        self._write_fields(ScopeKind.PROPERTIES, props)
        self._end()

    def write_buffer(self, buffer: Buffer) -> None:
        """Write a BUFFER scope; spans are written straight from caller memory."""
        self._begin(ScopeKind.BUFFER)
        self._write(pack_field("BUFFERTYPE", ValueKind.U32, int(buffer.type)))
        self._write(pack_field("DATALEN", ValueKind.COUNT, buffer.data_len))
        self._write(pack_field_prefix("DATA"))
        for span in buffer.spans:
            self._write(span)
        self._write(b"\n")
        self._end()

    def write_primitive(self, primitive: MeshPrimitive) -> None:
        weights = primitive.morph_weights
        if weights and len(weights) != len(primitive.morph_targets):
            raise WriterError(
                E_COUNT_MISMATCH,
                f"{len(weights)} morph weights for "
                f"{len(primitive.morph_targets)} morph targets",
            )
        self._begin(ScopeKind.MESHPRIMITIVE)
        self._write_fields(ScopeKind.MESHPRIMITIVE, primitive)
        self._end()

    def write_morph_target(self, target: MorphTarget) -> None:
        self._begin(ScopeKind.MORPHTARGET)
        self._write_fields(ScopeKind.MORPHTARGET, target)
        self._end()

    def write_model(self, model: Model) -> None:
        self._begin(ScopeKind.MODEL)
        self._write_fields(ScopeKind.MODEL, model)
        self._end()

    def write_animation(self, animation: Animation) -> None:
        self._begin(ScopeKind.ANIMATION)
        self._write_fields(ScopeKind.ANIMATION, animation)
        for keyframe in animation.keyframes:
            self._begin(ScopeKind.KEYFRAME)
            self._write_fields(ScopeKind.KEYFRAME, keyframe)
            self._end()
        self._end()

    def write_scene(self, scene: Scene) -> None:
        self._begin(ScopeKind.SCENE)
        self._write_fields(ScopeKind.SCENE, scene)
        for node in scene.nodes:
            self._begin(ScopeKind.NODE)
            self._write_fields(ScopeKind.NODE, node)
            self._end()
        self._end()

    def write_skeleton(self, skeleton: Skeleton) -> None:
        self._begin(ScopeKind.SKELETON)
        self._write_fields(ScopeKind.SKELETON, skeleton)
        for joint in skeleton.joints:
            self._begin(ScopeKind.JOINT)
            self._write_fields(ScopeKind.JOINT, joint)
            self._end()
        self._end()

    def write_graph(self, graph: EntityGraph) -> int:
        """Write every entity of ``graph``; returns the running byte total.

        A synthesized default scene is skipped: reading the file back
        synthesizes it again.
        """
        scenes = [] if graph.default_scene_synthesized else graph.scenes
        groups: List[Tuple[str, Sequence[Any], Callable[[Any], None]]] = [
            ("properties", [graph.properties], self.write_properties),
            ("buffer", graph.buffers, self.write_buffer),
            ("primitive", graph.primitives, self.write_primitive),
            ("morph_target", graph.morph_targets, self.write_morph_target),
            ("model", graph.models, self.write_model),
            ("animation", graph.animations, self.write_animation),
            ("skeleton", graph.skeletons, self.write_skeleton),
            ("scene", scenes, self.write_scene),
        ]
        total = sum(len(items) for _, items, _ in groups)
        with task("write.scopes", "Write scopes", total=total) as rep:
            for label, items, emit in groups:
                for i, entity in enumerate(items):
                    emit(entity)
                    rep.advance(
                        "write.scopes",
                        current_item=f"{label}[{i}]",
                        scopes=self.scope_count,
                        bytes=self.bytes_written,
                    )
        return self.bytes_written


def write_graph(graph: EntityGraph, output_path: Path) -> int:
    """Write ``graph`` to ``output_path``; returns total bytes written."""
    logger = get_logger()
    with section(f"Write DAS {output_path.name}"):
        with ScopeWriter(output_path) as writer:
            written = writer.write_graph(graph)
    logger.debug("Wrote %s (%d bytes)", output_path.name, written)
    return written
