"""libdas: reader, writer and validator for the DAS 3D scene container."""

from .api import (
    AssembleOptions,
    AssembleResult,
    assemble_das,
    inspect_das,
    load_assembly,
    read_das,
    validate_das,
    validate_graph,
    write_das,
)
from .model.graph import EntityGraph

__version__ = "0.1.0"

__all__ = [
    "AssembleOptions",
    "AssembleResult",
    "EntityGraph",
    "assemble_das",
    "inspect_das",
    "load_assembly",
    "read_das",
    "validate_das",
    "validate_graph",
    "write_das",
]
