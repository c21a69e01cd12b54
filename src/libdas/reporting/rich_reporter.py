from __future__ import annotations

import os
from typing import Any, Dict, List

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .base import Reporter, TaskRecord, level_label

_STYLES = {"info": "green", "warning": "yellow", "error": "bold red"}


def _transient_from_env() -> bool:
    flag = os.getenv("LIBDAS_PROGRESS_TRANSIENT", "0")
    return flag.lower() in ("1", "true", "yes")


class RichReporter(Reporter):
    """Progress bars on stderr via ``rich``.

    A scope walk with a known total (writing) gets a bar; one without
    (reading, where the scope count is only known at the end) gets a rule.
    With ``LIBDAS_PROGRESS_TRANSIENT=1`` bars disappear when done and the
    completion lines are printed once the last task has ended.
    """

    supports_progress = True

    def __init__(self, console: Console | None = None):
        super().__init__()
        self.console = console or Console(
            stderr=True, highlight=False, soft_wrap=False
        )
        self._transient = _transient_from_env()
        self.progress: Progress | None = None
        self._bars: Dict[str, TaskID] = {}
        self._pending: List[str] = []

    def _bar_for(self, rec: TaskRecord) -> TaskID:
        if self.progress is None:
            self.progress = Progress(
                SpinnerColumn(spinner_name="dots"),
                TextColumn("{task.description}"),
                BarColumn(bar_width=None),
                TextColumn("{task.completed}/{task.total}"),
                TextColumn("{task.fields[item]}", style="dim"),
                TimeElapsedColumn(),
                console=self.console,
                transient=self._transient,
                expand=True,
            )
            self.progress.start()
        bar = self.progress.add_task(rec.name, total=rec.total, item="")
        self._bars[rec.task_id] = bar
        return bar

    def task_started(self, rec: TaskRecord) -> None:
        if rec.total is None:
            self.console.rule(escape(rec.name))
        else:
            self._bar_for(rec)

    def task_advanced(self, rec: TaskRecord, item: Any) -> None:
        bar = self._bars.get(rec.task_id)
        if bar is not None and self.progress is not None:
            self.progress.update(bar, completed=rec.completed, item=item or "")

    def task_ended(self, rec: TaskRecord) -> None:
        bar = self._bars.pop(rec.task_id, None)
        if bar is not None and self.progress is not None:
            self.progress.update(bar, completed=rec.total, item="")
        line = escape(rec.completion_text())
        if self._transient:
            self._pending.append(line)
        else:
            self.console.print(line)
        if not self._tasks:
            self.flush()

    def message(self, level: str, text: str, fields: Dict[str, Any]) -> None:
        style = _STYLES.get(level, "cyan")
        self.console.print(f"[{style}]{level_label(level)}[/]: {escape(text)}")

    def section(self, title: str) -> None:
        self.console.rule(escape(title))

    def flush(self) -> None:
        if self.progress is not None:
            try:
                self.progress.stop()
            finally:
                self.progress = None
                self._bars.clear()
        if self._pending:
            self.console.print("\n".join(self._pending))
            self._pending.clear()
