from __future__ import annotations
from pathlib import Path

__all__ = ["safe_file_path"]


def safe_file_path(base_dir: Path, file_path: str) -> Path:
    """Resolve a span source path; it must stay inside ``base_dir``."""
    root = base_dir.resolve()
    candidate = (root / file_path).resolve()
    if candidate != root and root not in candidate.parents:
        raise ValueError(f"{file_path} escapes {root}")
    return candidate
