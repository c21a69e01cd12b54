from __future__ import annotations

from typing import Any, Dict

from .base import Reporter


class SilentReporter(Reporter):
    """Keeps task bookkeeping but prints nothing; for tests and embedding."""

    def message(self, level: str, text: str, fields: Dict[str, Any]) -> None:
        pass

    def section(self, title: str) -> None:
        pass
