from .entities import (
    Animation,
    Buffer,
    Keyframe,
    MeshPrimitive,
    Model,
    MorphTarget,
    Properties,
    Scene,
    SceneNode,
    Skeleton,
    SkeletonJoint,
)
from .graph import EntityGraph
from .validator import (
    ValidationFinding,
    ValidationReport,
    Validator,
    validate_graph,
)

__all__ = [
    "Animation",
    "Buffer",
    "EntityGraph",
    "Keyframe",
    "MeshPrimitive",
    "Model",
    "MorphTarget",
    "Properties",
    "Scene",
    "SceneNode",
    "Skeleton",
    "SkeletonJoint",
    "ValidationFinding",
    "ValidationReport",
    "Validator",
    "validate_graph",
]
