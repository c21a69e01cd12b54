"""One JSON object per line on stdout, for scripts and CI logs.

Every event carries ``event``; task events add ``id``, status events add
``level`` and ``message``. Validation findings keep their ``code`` and
``path`` as separate keys, and operation summaries become ``summary``
events whose values keep their Python types.
"""

from __future__ import annotations

import json
import sys
from typing import Any, Dict, TextIO

from .base import Reporter, TaskRecord

# summary kinds emitted by the public operations
SUMMARY_TYPES = frozenset({"read", "write", "validate", "inspect", "assemble"})

# task meta keys that only make sense while the task runs
_TRANSIENT_META = frozenset({"current_item"})


class JsonLinesReporter(Reporter):
    def __init__(self, stream: TextIO | None = None):
        super().__init__()
        self.stream = stream or sys.stdout

    def emit(self, event: str, **payload: Any) -> None:
        payload["event"] = event
        self.stream.write(json.dumps(payload, sort_keys=True, default=str))
        self.stream.write("\n")

    def task_started(self, rec: TaskRecord) -> None:
        self.emit(
            "task_start", id=rec.task_id, name=rec.name, total=rec.total, **rec.meta
        )

    def task_advanced(self, rec: TaskRecord, item: Any) -> None:
        extra = {} if item is None else {"current_item": item}
        self.emit("task_progress", id=rec.task_id, completed=rec.completed, **extra)

    def task_ended(self, rec: TaskRecord) -> None:
        meta = {k: v for k, v in rec.meta.items() if k not in _TRANSIENT_META}
        self.emit(
            "task_end",
            **meta,
            id=rec.task_id,
            status=rec.status.name.lower(),
            completed=rec.completed,
            total=rec.total,
            duration_seconds=rec.duration,
        )

    def message(self, level: str, text: str, fields: Dict[str, Any]) -> None:
        if level.startswith("verbose"):
            fields = {**fields, "vlevel": int(level[len("verbose"):])}
        self.emit("status", **fields, level=level, message=text)

    def summary_line(self, kind: str, values: Dict[str, Any], line: str) -> None:
        if kind in SUMMARY_TYPES:
            self.emit("summary", **values, summary_type=kind, level="info", raw=line)
        self.status(line)

    def section(self, title: str) -> None:
        self.emit("section", title=title)
