"""The ``libdas`` logger.

Log records are not written by a stream handler: :class:`ReporterHandler`
hands them to the active reporter, so a JSON lines run stays pure JSON and
a rich run keeps log lines above its progress bars. DEBUG records become
``verbose`` messages and only show at verbosity 1 and above.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from .reporting import get_reporter, get_verbosity, set_verbosity

__all__ = [
    "ReporterHandler",
    "get_logger",
    "configure_logging",
    "section",
    "step",
]

LOGGER_NAME = "libdas"


class ReporterHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        text = self.format(record)
        rep = get_reporter()
        if record.levelno >= logging.ERROR:
            rep.error(text)
        elif record.levelno >= logging.WARNING:
            rep.warning(text)
        elif record.levelno >= logging.INFO:
            rep.status(text)
        else:
            rep.verbose(text, level=1)


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def configure_logging(verbosity: int = 0) -> None:
    """Route ``libdas`` records to the reporter and set the verbosity."""
    set_verbosity(verbosity)
    logger = get_logger()
    logger.setLevel(logging.DEBUG if verbosity else logging.INFO)
    logger.handlers[:] = [h for h in logger.handlers if not isinstance(h, ReporterHandler)]
    handler = ReporterHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def step(message: str) -> None:
    get_reporter().status(f"  -> {message}")


@contextmanager
def section(title: str) -> Iterator[logging.Logger]:
    """Open a reporter section; yields the package logger."""
    logger = get_logger()
    get_reporter().section(title)
    try:
        yield logger
    finally:
        if get_verbosity() >= 2:
            logger.debug("end section: %s", title)
