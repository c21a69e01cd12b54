"""Reporter protocol shared by the read, write and validate paths.

A reporter sees three kinds of traffic:

* task progress (``start_task`` / ``advance`` / ``end_task``), one task per
  scope walk; the base class keeps the :class:`TaskRecord` bookkeeping and
  calls the ``task_*`` hooks concrete reporters render;
* messages (``status`` / ``verbose`` / ``warning`` / ``error`` and
  :meth:`Reporter.finding` for validation results), all funnelled through
  :meth:`Reporter.message`;
* one summary per operation via :meth:`Reporter.summary`, rendered as a
  ``"<Kind> summary: k=v ..."`` status line unless a reporter overrides
  :meth:`Reporter.summary_line`.
"""

from __future__ import annotations

import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Iterator, Mapping, Optional

__all__ = [
    "TaskStatus",
    "TaskRecord",
    "Reporter",
    "STAT_KEYS",
    "STATUS_ICONS",
    "level_label",
    "set_reporter",
    "get_reporter",
    "set_verbosity",
    "get_verbosity",
    "section",
    "task",
]

# task meta keys rendered as stats by the human-readable reporters
STAT_KEYS = ("scopes", "entities", "bytes", "findings")


class TaskStatus(Enum):
    RUNNING = auto()
    SUCCESS = auto()
    FAILED = auto()
    SKIPPED = auto()


STATUS_ICONS = {
    TaskStatus.SUCCESS: "✔",
    TaskStatus.FAILED: "✖",
    TaskStatus.SKIPPED: "→",
}


@dataclass(slots=True)
class TaskRecord:
    task_id: str
    name: str
    total: Optional[int] = None
    completed: int = 0
    status: TaskStatus = TaskStatus.RUNNING
    start_time: float = field(default_factory=time.time)
    end_time: float | None = None
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        return (self.end_time - self.start_time) if self.end_time else 0.0

    def finish(self, status: TaskStatus, meta: Mapping[str, Any]) -> None:
        self.status = status
        self.end_time = time.time()
        self.meta.update(meta)

    def stats_text(self) -> str:
        stats = [f"{k}={self.meta[k]}" for k in STAT_KEYS if k in self.meta]
        return f" [{' '.join(stats)}]" if stats else ""

    def completion_text(self) -> str:
        """``"✔ Write scopes 12/12 (0.01s) [scopes=18]"``."""
        icon = STATUS_ICONS.get(self.status, "?")
        counts = f" {self.completed}/{self.total}" if self.total is not None else ""
        return (
            f"{icon} {self.name}{counts} ({self.duration:.2f}s)"
            f"{self.stats_text()}"
        )


def level_label(level: str) -> str:
    """Short tag printed in front of a message (``verbose2`` -> ``VERB2``)."""
    if level.startswith("verbose"):
        return "VERB" + level[len("verbose"):]
    return {"info": "INFO", "warning": "WARN", "error": "ERROR"}.get(
        level, level.upper()
    )


class Reporter:
    supports_progress: bool = False

    def __init__(self) -> None:
        self._tasks: Dict[str, TaskRecord] = {}

    # Task bookkeeping ---------------------------------------------------------
    def start_task(
        self, task_id: str, name: str, total: int | None = None, **meta: Any
    ) -> None:
        rec = TaskRecord(task_id, name, total, meta=dict(meta))
        self._tasks[task_id] = rec
        self.task_started(rec)

    def advance(self, task_id: str, step: int = 1, **meta: Any) -> None:
        rec = self._tasks.get(task_id)
        if rec is None:
            return
        rec.completed += step
        rec.meta.update(meta)
        self.task_advanced(rec, meta.get("current_item"))

    def end_task(
        self,
        task_id: str,
        status: TaskStatus = TaskStatus.SUCCESS,
        **final_meta: Any,
    ) -> None:
        rec = self._tasks.pop(task_id, None)
        if rec is None:
            return
        rec.finish(status, final_meta)
        self.task_ended(rec)

    def task_started(self, rec: TaskRecord) -> None:
        pass

    def task_advanced(self, rec: TaskRecord, item: Any) -> None:
        pass

    def task_ended(self, rec: TaskRecord) -> None:
        pass

    # Messages -----------------------------------------------------------------
    def message(self, level: str, text: str, fields: Dict[str, Any]) -> None:
        raise NotImplementedError

    def status(self, message: str, **fields: Any) -> None:
        self.message("info", message, fields)

    def verbose(self, message: str, *, level: int = 1, **fields: Any) -> None:
        if get_verbosity() >= level:
            self.message(f"verbose{level}", message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.message("warning", message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self.message("error", message, fields)

    def finding(
        self, code: str, path: str, text: str, *, severity: str = "error"
    ) -> None:
        """Report one validation finding as ``"<code> <path>: <text>"``."""
        self.message(
            severity, f"{code} {path}: {text}", {"code": code, "path": path}
        )

    def section(self, title: str) -> None:
        raise NotImplementedError

    def summary(self, kind: str, **values: Any) -> None:
        pairs = " ".join(f"{k}={v}" for k, v in values.items())
        self.summary_line(kind, values, f"{kind.capitalize()} summary: {pairs}")

    def summary_line(self, kind: str, values: Dict[str, Any], line: str) -> None:
        self.status(line)

    def flush(self) -> None:
        pass


@dataclass(slots=True)
class _Settings:
    reporter: Reporter | None = None
    verbosity: int = 0


_SETTINGS = _Settings()


def set_verbosity(level: int) -> None:
    _SETTINGS.verbosity = max(0, level)


def get_verbosity() -> int:
    return _SETTINGS.verbosity


def set_reporter(rep: Reporter) -> None:
    _SETTINGS.reporter = rep


def get_reporter() -> Reporter:
    if _SETTINGS.reporter is None:
        from .plain import PlainReporter  # local import to avoid cycle

        _SETTINGS.reporter = PlainReporter(stream=sys.stderr)
    return _SETTINGS.reporter


@contextmanager
def section(title: str) -> Iterator[None]:
    get_reporter().section(title)
    yield


@contextmanager
def task(
    task_id: str, name: str, total: int | None = None, **meta: Any
) -> Iterator[Reporter]:
    """Run a block as one reporter task, marked failed if the block raises."""
    rep = get_reporter()
    rep.start_task(task_id, name, total, **meta)
    outcome = TaskStatus.FAILED
    try:
        yield rep
        outcome = TaskStatus.SUCCESS
    finally:
        rep.end_task(task_id, outcome)
