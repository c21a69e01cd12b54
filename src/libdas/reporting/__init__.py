"""Progress and message reporting for libdas operations.

The active reporter is process-wide: library code calls
:func:`get_reporter` (or the :func:`task` / :func:`section` context
managers) and callers pick the output style with :func:`set_reporter`.
Without one, a :class:`PlainReporter` on stderr is installed lazily.
"""

from .base import (
    Reporter,
    TaskRecord,
    TaskStatus,
    get_reporter,
    get_verbosity,
    section,
    set_reporter,
    set_verbosity,
    task,
)
from .jsonl import JsonLinesReporter
from .plain import PlainReporter
from .rich_reporter import RichReporter
from .silent import SilentReporter

__all__ = [
    "Reporter",
    "TaskRecord",
    "TaskStatus",
    "get_reporter",
    "set_reporter",
    "get_verbosity",
    "set_verbosity",
    "section",
    "task",
    "JsonLinesReporter",
    "PlainReporter",
    "RichReporter",
    "SilentReporter",
]
