"""High-level API for reading, writing, validating and assembling DAS files."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from .format.constants import DEFAULT_CHUNK_SIZE
from .format.errors import E_SPEC_FIELD, spec_error
from .format.inspector import inspect_das as _inspect_das_impl
from .format.reader import ScopeReader
from .format.writer import write_graph
from .logging import get_logger
from .model.graph import EntityGraph
from .model.validator import ValidationFinding, ValidationReport, validate_graph
from .reporting import get_reporter, task
from .spec.loader import load_assembly

__all__ = [
    "AssembleOptions",
    "AssembleResult",
    "read_das",
    "write_das",
    "validate_graph",
    "validate_das",
    "inspect_das",
    "load_assembly",
    "assemble_das",
]


@dataclass(slots=True)
class AssembleOptions:
    input_spec: Path
    output_path: Path
    # run the structural validator before writing; errors abort the build
    validate: bool = True
    # tolerate validator warnings silently instead of reporting each one
    quiet_warnings: bool = False


@dataclass(slots=True)
class AssembleResult:
    output_file: Path
    bytes_written: int
    report: ValidationReport | None = None


def read_das(
    path: str | Path,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    lenient: bool = False,
) -> EntityGraph:
    p = Path(path)
    with task("read.scopes", f"Read {p.name}"):
        reader = ScopeReader(p, chunk_size=chunk_size, lenient=lenient)
        graph = reader.parse()
    counts = graph.counts()
    get_reporter().summary(
        "read",
        file=p.name,
        scopes=reader.scope_count,
        recovered=len(reader.errors),
        **counts,
    )
    return graph


def write_das(graph: EntityGraph, path: str | Path) -> int:
    p = Path(path)
    written = write_graph(graph, p)
    get_reporter().summary("write", file=p.name, bytes=written)
    return written


def _report_findings(report: ValidationReport, *, warnings: bool = True) -> None:
    rep = get_reporter()
    for e in report.errors:
        rep.finding(e.code, e.path, e.message)
    if warnings:
        for w in report.warnings:
            rep.finding(w.code, w.path, w.message, severity="warning")


def validate_das(
    path: str | Path, *, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> ValidationReport:
    """Lenient read followed by graph validation.

    Scope syntax errors recovered while reading are merged into the report
    as errors; fatal format errors propagate.
    """
    p = Path(path)
    reader = ScopeReader(p, chunk_size=chunk_size, lenient=True)
    graph = reader.parse()
    report = validate_graph(graph)
    for err in reader.errors:
        ctx = err.context or {}
        report.add(
            ValidationFinding(
                err.code, err.message, f"offset {ctx.get('offset', '?')}"
            )
        )
    _report_findings(report)
    get_reporter().summary(
        "validate",
        file=p.name,
        errors=len(report.errors),
        warnings=len(report.warnings),
    )
    return report


def inspect_das(
    path: str | Path, *, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> Dict[str, Any]:
    info = _inspect_das_impl(path, chunk_size=chunk_size)
    get_reporter().summary(
        "inspect",
        file=Path(path).name,
        size=info["file_size"],
        scopes=info["scope_count"],
    )
    return info


def assemble_das(options: AssembleOptions) -> AssembleResult:
    logger = get_logger()
    rep = get_reporter()
    graph = load_assembly(options.input_spec)
    counts = graph.counts()
    rep.status(
        "Spec summary: "
        + " ".join(f"{k}={v}" for k, v in counts.items() if v)
    )
    report = None
    if options.validate:
        report = validate_graph(graph)
        _report_findings(report, warnings=not options.quiet_warnings)
        if not report.ok:
            raise spec_error(
                E_SPEC_FIELD,
                "Assembly validation failed: "
                + "; ".join(
                    f"{e.code}:{e.path}:{e.message}" for e in report.errors
                ),
                {"path": str(options.input_spec)},
            )
    bytes_written = write_graph(graph, options.output_path)
    logger.info(
        "Assembled DAS: %s (%d bytes, buffers=%d models=%d scenes=%d)",
        options.output_path.name,
        bytes_written,
        counts["buffers"],
        counts["models"],
        counts["scenes"],
    )
    rep.summary(
        "assemble",
        file=options.output_path.name,
        bytes=bytes_written,
        warnings=len(report.warnings) if report else 0,
    )
    return AssembleResult(
        output_file=options.output_path,
        bytes_written=bytes_written,
        report=report,
    )
