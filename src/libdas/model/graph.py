"""In-memory entity graph: owned sequences plus checked index accessors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, TypeVar

from ..format.errors import (
    E_DUPLICATE_PROPERTIES,
    E_INDEX_OUT_OF_RANGE,
    DasError,
    EntityIndexError,
)
from .entities import (
    Animation,
    Buffer,
    MeshPrimitive,
    Model,
    MorphTarget,
    Properties,
    Scene,
    SceneNode,
    Skeleton,
)

__all__ = ["EntityGraph", "DEFAULT_SCENE_NAME"]

DEFAULT_SCENE_NAME = "default"

T = TypeVar("T")


def _checked(seq: Sequence[T], index: int, kind: str) -> T:
    if not isinstance(index, int) or index < 0 or index >= len(seq):
        raise EntityIndexError(
            E_INDEX_OUT_OF_RANGE,
            f"{kind} index {index} out of range (have {len(seq)})",
            {"kind": kind, "index": index, "count": len(seq)},
        )
    return seq[index]


@dataclass(slots=True)
class EntityGraph:
    properties: Properties = field(default_factory=Properties)
    buffers: List[Buffer] = field(default_factory=list)
    primitives: List[MeshPrimitive] = field(default_factory=list)
    morph_targets: List[MorphTarget] = field(default_factory=list)
    models: List[Model] = field(default_factory=list)
    animations: List[Animation] = field(default_factory=list)
    scenes: List[Scene] = field(default_factory=list)
    skeletons: List[Skeleton] = field(default_factory=list)
    default_scene_synthesized: bool = False
    _has_properties: bool = field(default=False, repr=False, compare=False)

    # Accessors ----------------------------------------------------------------
    def buffer(self, index: int) -> Buffer:
        return _checked(self.buffers, index, "buffer")

    def primitive(self, index: int) -> MeshPrimitive:
        return _checked(self.primitives, index, "primitive")

    def morph_target(self, index: int) -> MorphTarget:
        return _checked(self.morph_targets, index, "morph target")

    def model(self, index: int) -> Model:
        return _checked(self.models, index, "model")

    def animation(self, index: int) -> Animation:
        return _checked(self.animations, index, "animation")

    def scene(self, index: int) -> Scene:
        return _checked(self.scenes, index, "scene")

    def skeleton(self, index: int) -> Skeleton:
        return _checked(self.skeletons, index, "skeleton")

    # Assembly -----------------------------------------------------------------
    def add(self, entity: Any) -> int:
        """Append a top-level entity; returns its index in its sequence."""
        match entity:
            case Properties():
                if self._has_properties:
                    raise DasError(
                        E_DUPLICATE_PROPERTIES,
                        "Graph already holds a PROPERTIES entity",
                    )
                self.properties = entity
                self._has_properties = True
                return 0
            case Buffer():
                seq: list = self.buffers
            case MeshPrimitive():
                seq = self.primitives
            case MorphTarget():
                seq = self.morph_targets
            case Model():
                seq = self.models
            case Animation():
                seq = self.animations
            case Scene():
                seq = self.scenes
            case Skeleton():
                seq = self.skeletons
            case _:
                raise TypeError(
                    f"Not a top-level entity: {type(entity).__name__}"
                )
        seq.append(entity)
        return len(seq) - 1

    def finish(self) -> None:
        """Synthesize the default scene when no scene was declared.

        The synthesized scene holds one root node per model (object-library
        mode).
        """
        if self.scenes:
            return
        nodes = [
            SceneNode(name=m.name, mesh=i) for i, m in enumerate(self.models)
        ]
        self.scenes.append(Scene(name=DEFAULT_SCENE_NAME, nodes=nodes))
        self.default_scene_synthesized = True

    def counts(self) -> Dict[str, int]:
        return {
            "buffers": len(self.buffers),
            "primitives": len(self.primitives),
            "morph_targets": len(self.morph_targets),
            "models": len(self.models),
            "animations": len(self.animations),
            "scenes": len(self.scenes),
            "skeletons": len(self.skeletons),
        }
