"""DAS file inspection utilities.

Public functions:
- inspect_das(path) -> dict
- check_layout(info) -> list[str]
"""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List

from .constants import DEFAULT_CHUNK_SIZE, SIGNATURE_SIZE
from .reader import ScopeReader

__all__ = ["inspect_das", "check_layout"]


def inspect_das(
    path: str | Path, *, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> Dict[str, Any]:
    """Parse ``path`` and describe its scopes and entity counts.

    Uses a lenient trace read so a structurally damaged file can still be
    described; recovered syntax errors are listed under ``errors``.
    """
    p = Path(path)
    reader = ScopeReader(p, chunk_size=chunk_size, lenient=True, trace=True)
    graph = reader.parse()
    scopes = [asdict(rec) for rec in reader.scope_log]
    return {
        "file_size": p.stat().st_size,
        "signature": dict(reader.signature),
        "scope_count": reader.scope_count,
        "scopes": scopes,
        "counts": graph.counts(),
        "properties": asdict(graph.properties),
        "default_scene_synthesized": graph.default_scene_synthesized,
        "errors": [e.to_dict() for e in reader.errors],
    }


def check_layout(info: Dict[str, Any]) -> List[str]:
    """Plausibility checks over an :func:`inspect_das` result."""
    issues: List[str] = []
    sig = info["signature"]
    if not sig.get("magic_ok"):
        issues.append("Signature magic mismatch")
    if not sig.get("padding_ok"):
        issues.append("Signature padding invalid")
    file_size = info["file_size"]
    last = SIGNATURE_SIZE - 1
    for rec in info["scopes"]:
        if rec["offset"] <= last:
            issues.append(
                f"Scope {rec['name']} at {rec['offset']} not after previous scope"
            )
        if rec["offset"] >= file_size:
            issues.append(f"Scope {rec['name']} starts past end of file")
        last = rec["offset"]
    top_level = [s for s in info["scopes"] if s["depth"] == 0]
    if not top_level or top_level[0]["name"] != "PROPERTIES":
        issues.append("First scope is not PROPERTIES")
    for err in info.get("errors", []):
        issues.append(f"{err['code']}: {err['message']}")
    return issues
