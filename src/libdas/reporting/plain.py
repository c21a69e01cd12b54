from __future__ import annotations

import sys
from typing import Any, Dict, TextIO

from .base import Reporter, TaskRecord, get_verbosity, level_label

# ANSI SGR codes per message level; verbose levels share one
_COLORS = {"info": "32", "warning": "33", "error": "31"}
_VERBOSE_COLOR = "36"


class PlainReporter(Reporter):
    """Deterministic line-oriented output on stderr.

    Per-scope progress lines only appear at verbosity 1 and above; task
    completions, messages and summaries are always written.
    """

    def __init__(
        self, stream: TextIO | None = None, use_color: bool | None = None
    ):
        super().__init__()
        self.stream = stream or sys.stderr
        if use_color is None:
            isatty = getattr(self.stream, "isatty", None)
            use_color = bool(isatty and isatty())
        self.use_color = use_color

    def _write(self, text: str) -> None:
        self.stream.write(text + "\n")

    def _paint(self, level: str, text: str) -> str:
        if not self.use_color:
            return text
        code = _COLORS.get(level, _VERBOSE_COLOR)
        return f"\x1b[{code}m{text}\x1b[0m"

    def task_advanced(self, rec: TaskRecord, item: Any) -> None:
        if get_verbosity() < 1:
            return
        where = item or f"item#{rec.completed}"
        of = "?" if rec.total is None else rec.total
        self._write(f"   · {rec.name}: {where} ({rec.completed}/{of})")

    def task_ended(self, rec: TaskRecord) -> None:
        self._write(" " + rec.completion_text())

    def message(self, level: str, text: str, fields: Dict[str, Any]) -> None:
        self._write(f"{self._paint(level, level_label(level))}: {text}")

    def section(self, title: str) -> None:
        self.stream.write(f"\n[{title}]\n")
