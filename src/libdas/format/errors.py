"""Error definitions for libdas."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

E_SIGNATURE = "E_SIGNATURE"
E_UNKNOWN_SCOPE = "E_UNKNOWN_SCOPE"
E_UNKNOWN_FIELD = "E_UNKNOWN_FIELD"
E_PREMATURE_EOF = "E_PREMATURE_EOF"
E_SCOPE_IMBALANCE = "E_SCOPE_IMBALANCE"
E_NESTING = "E_NESTING"
E_SYNTAX = "E_SYNTAX"
E_DATA_LENGTH = "E_DATA_LENGTH"
E_DUPLICATE_FIELD = "E_DUPLICATE_FIELD"
E_MISSING_PROPERTIES = "E_MISSING_PROPERTIES"
E_DUPLICATE_PROPERTIES = "E_DUPLICATE_PROPERTIES"
E_TOKEN_TOO_LONG = "E_TOKEN_TOO_LONG"
E_COUNT_MISMATCH = "E_COUNT_MISMATCH"
E_IO_OPEN = "E_IO_OPEN"
E_IO_READ = "E_IO_READ"
E_IO_WRITE = "E_IO_WRITE"
E_INDEX_OUT_OF_RANGE = "E_INDEX_OUT_OF_RANGE"
E_SPEC_FIELD = "E_SPEC_FIELD"
E_SPEC_DATA = "E_SPEC_DATA"
E_INTERNAL = "E_INTERNAL"


@dataclass
class DasError(Exception):
    code: str
    message: str
    context: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}: {self.message}" + (
            f" | ctx={self.context}" if self.context else ""
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context or {},
        }


class StreamError(DasError):
    pass


class FormatError(DasError):
    pass


class ScopeSyntaxError(FormatError):
    """Scope imbalance or misplaced scope; recoverable in lenient mode."""


class WriterError(DasError):
    pass


class SpecificationError(DasError):
    pass


class EntityIndexError(DasError, IndexError):
    pass


def format_error(
    code: str, message: str, context: Optional[Dict[str, Any]] = None
) -> FormatError:
    return FormatError(code=code, message=message, context=context)


def spec_error(
    code: str, message: str, context: Optional[Dict[str, Any]] = None
) -> SpecificationError:
    return SpecificationError(code=code, message=message, context=context)


def internal_error(
    message: str, context: Optional[Dict[str, Any]] = None
) -> DasError:
    return DasError(code=E_INTERNAL, message=message, context=context)


__all__ = [
    "DasError",
    "StreamError",
    "FormatError",
    "ScopeSyntaxError",
    "WriterError",
    "SpecificationError",
    "EntityIndexError",
    "format_error",
    "spec_error",
    "internal_error",
    "E_SIGNATURE",
    "E_UNKNOWN_SCOPE",
    "E_UNKNOWN_FIELD",
    "E_PREMATURE_EOF",
    "E_SCOPE_IMBALANCE",
    "E_NESTING",
    "E_SYNTAX",
    "E_DATA_LENGTH",
    "E_DUPLICATE_FIELD",
    "E_MISSING_PROPERTIES",
    "E_DUPLICATE_PROPERTIES",
    "E_TOKEN_TOO_LONG",
    "E_COUNT_MISMATCH",
    "E_IO_OPEN",
    "E_IO_READ",
    "E_IO_WRITE",
    "E_INDEX_OUT_OF_RANGE",
    "E_SPEC_FIELD",
    "E_SPEC_DATA",
    "E_INTERNAL",
]
