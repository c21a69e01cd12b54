"""Single-pass scope reader.

Drives :class:`ChunkedScopeStream` and the grammar helpers through the state
machine ``START -> READ_SIGNATURE -> READ_SCOPE* -> END``. Each scope's
fields are collected on a frame; when the frame's ``ENDSCOPE`` is consumed
the frame is cast into its entity. Nested entities (keyframes, nodes,
joints) are appended to their parent frame; top-level entities are yielded.

Format errors (bad signature, unknown scope or field, premature EOF,
malformed values) are always fatal. Scope syntax errors (imbalance,
misplaced nesting, duplicate fields) are fatal unless ``lenient`` is set, in
which case they are recorded in :attr:`ScopeReader.errors` and parsing
recovers.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..logging import get_logger
from ..model.entities import (
    Animation,
    Buffer,
    Keyframe,
    MeshPrimitive,
    Model,
    MorphTarget,
    Properties,
    Scene,
    SceneNode,
    Skeleton,
    SkeletonJoint,
)
from ..model.graph import EntityGraph
from .constants import (
    DEFAULT_CHUNK_SIZE,
    MAX_STRING_LENGTH,
    MAX_TOKEN_LENGTH,
    NESTED_SCOPES,
    SCOPE_NAMES,
    SIGNATURE_SIZE,
    ScopeKind,
)
from .errors import (
    E_DATA_LENGTH,
    E_DUPLICATE_FIELD,
    E_DUPLICATE_PROPERTIES,
    E_MISSING_PROPERTIES,
    E_NESTING,
    E_PREMATURE_EOF,
    E_SCOPE_IMBALANCE,
    E_SIGNATURE,
    E_SYNTAX,
    E_TOKEN_TOO_LONG,
    E_UNKNOWN_FIELD,
    E_UNKNOWN_SCOPE,
    DasError,
    FormatError,
    ScopeSyntaxError,
    format_error,
    internal_error,
)
from .grammar import (
    SCOPE_FIELDS,
    FieldSpec,
    TokenKind,
    ValueKind,
    classify_token,
    extract_word,
    find_string_end,
    skip_whitespace,
)
from .packers import parse_signature, unpack_value, value_width
from .stream import ChunkedScopeStream

__all__ = ["ScopeReader", "ScopeRecord"]

_ARRAY_KINDS = (ValueKind.U32_ARRAY, ValueKind.F32_ARRAY, ValueKind.BLOB)


class _State(enum.Enum):
    START = enum.auto()
    READ_SIGNATURE = enum.auto()
    READ_SCOPE = enum.auto()
    END = enum.auto()


@dataclass(slots=True)
class ScopeRecord:
    name: str
    offset: int
    line: int
    depth: int


@dataclass(slots=True)
class _Frame:
    kind: ScopeKind
    name: str
    offset: int
    line: int
    values: Dict[str, Any] = field(default_factory=dict)
    counts: Dict[str, int] = field(default_factory=dict)
    children: List[Any] = field(default_factory=list)
    discard: bool = False


class _Cursor:
    """Read position over the chunk stream.

    Keeps the unconsumed tail of the previous chunk so tokens and binary
    values may straddle refills; ``line`` counts text lines only.
    """

    def __init__(self, stream: ChunkedScopeStream) -> None:
        self._stream = stream
        self._buf = bytearray()
        self._pos = 0
        self._base = 0
        self.line = 1

    @property
    def offset(self) -> int:
        return self._base + self._pos

    def error(self, code: str, message: str) -> FormatError:
        return FormatError(
            code, message, {"offset": self.offset, "line": self.line}
        )

    def _fill(self) -> bool:
        if self._pos:
            del self._buf[: self._pos]
            self._base += self._pos
            self._pos = 0
        if not self._stream.read_chunk():
            return False
        self._buf += self._stream.buffer_view()
        return True

    def ensure(self, n: int) -> bool:
        while len(self._buf) - self._pos < n:
            if not self._fill():
                return False
        return True

    def take(self, n: int) -> bytes:
        """Consume exactly ``n`` bytes, copying across as many refills as needed."""
        if len(self._buf) - self._pos >= n:
            out = bytes(self._buf[self._pos : self._pos + n])
            self._pos += n
            return out
        out = bytearray()
        while len(out) < n:
            if self._pos == len(self._buf) and not self._fill():
                raise self.error(
                    E_PREMATURE_EOF,
                    f"Unexpected end of file: needed {n} bytes, got {len(out)}",
                )
            chunk = min(n - len(out), len(self._buf) - self._pos)
            out += self._buf[self._pos : self._pos + chunk]
            self._pos += chunk
        return bytes(out)

    def read_token(self) -> Optional[Tuple[bytes, Optional[int], int]]:
        """Next word as ``(word, terminator, offset)``; None at end of file.

        The terminator (whitespace or ``:``) is left unconsumed.
        """
        while True:
            pos, newlines = skip_whitespace(self._buf, self._pos, len(self._buf))
            self.line += newlines
            self._pos = pos
            if pos < len(self._buf):
                break
            if not self._fill():
                return None
        while True:
            end = extract_word(self._buf, self._pos, len(self._buf))
            if end - self._pos > MAX_TOKEN_LENGTH:
                raise self.error(
                    E_TOKEN_TOO_LONG,
                    f"Token longer than {MAX_TOKEN_LENGTH} bytes",
                )
            if end < len(self._buf):
                terminator: Optional[int] = self._buf[end]
                break
            if not self._fill():
                end, terminator = len(self._buf), None
                break
        offset = self.offset
        word = bytes(self._buf[self._pos : end])
        self._pos = end
        return word, terminator, offset

    def expect(self, literal: bytes, what: str) -> None:
        got = self.take(len(literal))
        if got != literal:
            raise self.error(E_SYNTAX, f"Expected {what}, found {got!r}")

    def expect_line_end(self) -> None:
        b = self.take(1)
        if b == b"\r":
            b = self.take(1)
        if b != b"\n":
            raise self.error(E_SYNTAX, f"Expected end of line, found {b!r}")
        self.line += 1

    def read_string(self) -> str:
        self.expect(b'"', "opening quote")
        while True:
            end = find_string_end(self._buf, self._pos, len(self._buf))
            if end >= 0:
                break
            if len(self._buf) - self._pos > MAX_STRING_LENGTH:
                raise self.error(
                    E_TOKEN_TOO_LONG,
                    f"String longer than {MAX_STRING_LENGTH} bytes",
                )
            if not self._fill():
                raise self.error(E_PREMATURE_EOF, "Unterminated string")
        raw = bytes(self._buf[self._pos : end])
        self._pos = end + 1
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise self.error(E_SYNTAX, f"Invalid UTF-8 string: {exc}") from exc


class ScopeReader:
    def __init__(
        self,
        path: str | Path | None = None,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        lenient: bool = False,
        trace: bool = False,
    ) -> None:
        self.path = Path(path) if path is not None else None
        self.chunk_size = chunk_size
        self.lenient = lenient
        self.trace = trace
        self.errors: List[ScopeSyntaxError] = []
        self.scope_log: List[ScopeRecord] = []
        self.signature: Dict[str, Any] = {}
        self.scope_count = 0
        self._stream = ChunkedScopeStream(chunk_size)
        self._cursor = _Cursor(self._stream)
        self._stack: List[_Frame] = []
        self._seen_properties = False
        self._log = get_logger()

    # Public API ---------------------------------------------------------------
    def parse(self, path: str | Path | None = None) -> EntityGraph:
        """Read the whole file into an :class:`EntityGraph`."""
        graph = EntityGraph()
        for entity in self.iter_entities(path):
            graph.add(entity)
        graph.finish()
        if graph.default_scene_synthesized:
            self._log.debug(
                "No SCENE scopes; synthesized default scene with %d nodes",
                len(graph.scenes[0].nodes),
            )
        return graph

    def iter_entities(self, path: str | Path | None = None) -> Iterator[Any]:
        """Yield top-level entities in file order as their scopes close."""
        if path is not None:
            self.path = Path(path)
        if self.path is None:
            raise ValueError("No input path given")
        state = _State.START
        try:
            while state is not _State.END:
                match state:
                    case _State.START:
                        self._reset()
                        self._stream.open(self.path)
                        state = _State.READ_SIGNATURE
                    case _State.READ_SIGNATURE:
                        self._read_signature()
                        state = _State.READ_SCOPE
                    case _State.READ_SCOPE:
                        token = self._cursor.read_token()
                        if token is None:
                            self._finish_stream()
                            state = _State.END
                            continue
                        yield from self._dispatch(*token)
        finally:
            self._stream.close()

    # State handlers -----------------------------------------------------------
    def _reset(self) -> None:
        self.errors.clear()
        self.scope_log.clear()
        self.signature = {}
        self.scope_count = 0
        self._cursor = _Cursor(self._stream)
        self._stack.clear()
        self._seen_properties = False

    def _read_signature(self) -> None:
        if not self._cursor.ensure(SIGNATURE_SIZE):
            raise FormatError(
                E_SIGNATURE,
                f"File shorter than the {SIGNATURE_SIZE}-byte signature",
                {"path": str(self.path), "offset": 0},
            )
        self.signature = parse_signature(self._cursor.take(SIGNATURE_SIZE))
        if not (self.signature["magic_ok"] and self.signature["padding_ok"]):
            raise FormatError(
                E_SIGNATURE,
                f"Bad DAS signature (magic={self.signature['magic']})",
                {"path": str(self.path), "offset": 0},
            )

    def _finish_stream(self) -> None:
        if self._stack:
            raise self._format_error(
                E_PREMATURE_EOF,
                f"End of file inside {self._stack[-1].name} scope",
            )
        if not self._seen_properties:
            raise self._format_error(
                E_MISSING_PROPERTIES, "File holds no PROPERTIES scope"
            )
        self._log.debug(
            "Read %d scopes from %s (%d bytes)",
            self.scope_count,
            self.path.name if self.path else "?",
            self._cursor.offset,
        )

    def _dispatch(
        self, word: bytes, terminator: Optional[int], offset: int
    ) -> Iterator[Any]:
        kind = classify_token(word, terminator)
        match kind:
            case TokenKind.SCOPE_END:
                entity = self._end_scope()
                if entity is not None:
                    yield entity
            case TokenKind.KEY:
                self._read_field(word.decode("ascii"))
            case TokenKind.SCOPE_START:
                yield from self._begin_scope(word.decode("ascii"), offset)
            case _:
                raise self._format_error(
                    E_SYNTAX, f"Unexpected token {word[:32]!r}", offset=offset
                )

    def _begin_scope(self, name: str, offset: int) -> Iterator[Any]:
        kind = SCOPE_NAMES.get(name)
        if kind is None:
            raise self._format_error(
                E_UNKNOWN_SCOPE, f"Unknown scope {name!r}", offset=offset
            )
        discard = False
        parent_kind = NESTED_SCOPES.get(kind)
        if parent_kind is not None:
            top = self._stack[-1] if self._stack else None
            if top is None or top.kind is not parent_kind or top.discard:
                self._syntax_error(
                    E_NESTING,
                    f"{name} scope must be nested directly in {parent_kind.value}",
                    offset=offset,
                )
                discard = True
        elif self._stack:
            self._syntax_error(
                E_SCOPE_IMBALANCE,
                f"{name} scope opened while {self._stack[-1].name} is open",
                offset=offset,
            )
            # recover: implicitly close everything still open
            while self._stack:
                entity = self._close_frame(self._stack.pop())
                if entity is not None:
                    yield entity
        if not self._seen_properties and kind is not ScopeKind.PROPERTIES:
            raise self._format_error(
                E_MISSING_PROPERTIES,
                f"First scope must be PROPERTIES, found {name}",
                offset=offset,
            )
        if kind is ScopeKind.PROPERTIES:
            if self._seen_properties:
                raise self._format_error(
                    E_DUPLICATE_PROPERTIES,
                    "Duplicate PROPERTIES scope",
                    offset=offset,
                )
            self._seen_properties = True
        if self.trace:
            self.scope_log.append(
                ScopeRecord(name, offset, self._cursor.line, len(self._stack))
            )
        self.scope_count += 1
        self._stack.append(
            _Frame(kind, name, offset, self._cursor.line, discard=discard)
        )

    def _end_scope(self) -> Any:
        if not self._stack:
            self._syntax_error(E_SCOPE_IMBALANCE, "ENDSCOPE without open scope")
            return None
        return self._close_frame(self._stack.pop())

    def _close_frame(self, frame: _Frame) -> Any:
        try:
            entity = self._build_entity(frame)
        except DasError as exc:
            raise self._annotate(exc, frame) from None
        except (TypeError, ValueError) as exc:
            raise self._annotate(
                FormatError(E_SYNTAX, f"Invalid {frame.name} scope: {exc}"),
                frame,
            ) from exc
        if frame.discard:
            return None
        if frame.kind in NESTED_SCOPES:
            self._stack[-1].children.append(entity)
            return None
        return entity

    # Fields -------------------------------------------------------------------
    def _read_field(self, key: str) -> None:
        if not self._stack:
            raise self._format_error(E_SYNTAX, f"Field {key} outside of a scope")
        frame = self._stack[-1]
        spec = SCOPE_FIELDS[frame.kind].get(key)
        if spec is None:
            raise self._format_error(
                E_UNKNOWN_FIELD,
                f"Unknown field {key!r} in {frame.name} scope",
                field=key,
            )
        try:
            value = self._read_value(frame, spec)
        except DasError as exc:
            raise self._annotate(exc, frame, key) from None
        target = frame.counts if spec.kind is ValueKind.COUNT else frame.values
        slot = spec.key if spec.kind is ValueKind.COUNT else spec.attr
        if slot in target:
            self._syntax_error(
                E_DUPLICATE_FIELD,
                f"Duplicate field {key} in {frame.name} scope",
                field=key,
            )
        target[slot] = value

    def _read_value(self, frame: _Frame, spec: FieldSpec) -> Any:
        cur = self._cursor
        cur.expect(b": ", "': ' separator")
        if spec.kind is ValueKind.STRING:
            value: Any = cur.read_string()
        elif spec.kind in _ARRAY_KINDS:
            count = frame.counts.get(spec.count_key or "")
            if count is None:
                code = E_DATA_LENGTH if spec.kind is ValueKind.BLOB else E_SYNTAX
                raise cur.error(
                    code, f"{spec.key} appears before {spec.count_key}"
                )
            raw = cur.take(value_width(spec.kind, count))
            value = unpack_value(spec.kind, raw, count)
        else:
            value = unpack_value(spec.kind, cur.take(value_width(spec.kind)))
        cur.expect_line_end()
        return value

    # Entity construction --------------------------------------------------------
    def _build_entity(self, frame: _Frame) -> Any:
        specs = SCOPE_FIELDS[frame.kind]
        for spec in specs.values():
            if spec.kind is not ValueKind.COUNT:
                continue
            if frame.counts.get(spec.key, 0) and spec.attr not in frame.values:
                array_key = next(
                    s.key for s in specs.values() if s.count_key == spec.key
                )
                code = E_DATA_LENGTH if frame.kind is ScopeKind.BUFFER else E_SYNTAX
                raise FormatError(
                    code, f"{spec.key} declared without {array_key}"
                )
        v = frame.values
        match frame.kind:
            case ScopeKind.PROPERTIES:
                return Properties(**v)
            case ScopeKind.BUFFER:
                return Buffer(type=v.get("type", 0), spans=[v.get("data", b"")])
            case ScopeKind.MESHPRIMITIVE:
                return MeshPrimitive(**v)
            case ScopeKind.MORPHTARGET:
                return MorphTarget(**v)
            case ScopeKind.MODEL:
                return Model(**v)
            case ScopeKind.ANIMATION:
                return Animation(**v, keyframes=frame.children)
            case ScopeKind.KEYFRAME:
                return Keyframe(**v)
            case ScopeKind.SCENE:
                return Scene(**v, nodes=frame.children)
            case ScopeKind.NODE:
                return SceneNode(**v)
            case ScopeKind.SKELETON:
                return Skeleton(**v, joints=frame.children)
            case ScopeKind.JOINT:
                return SkeletonJoint(**v)
            case _:
                raise internal_error(f"No entity for scope kind {frame.kind}")

    # Errors -------------------------------------------------------------------
    def _context(
        self, offset: int | None = None, fld: str | None = None
    ) -> Dict[str, Any]:
        ctx: Dict[str, Any] = {
            "path": str(self.path),
            "offset": self._cursor.offset if offset is None else offset,
            "line": self._cursor.line,
        }
        if self._stack:
            ctx["scope"] = self._stack[-1].name
        if fld is not None:
            ctx["field"] = fld
        return ctx

    def _format_error(
        self,
        code: str,
        message: str,
        *,
        offset: int | None = None,
        field: str | None = None,
    ) -> FormatError:
        return format_error(code, message, self._context(offset, field))

    def _syntax_error(
        self,
        code: str,
        message: str,
        *,
        offset: int | None = None,
        field: str | None = None,
    ) -> None:
        err = ScopeSyntaxError(code, message, self._context(offset, field))
        if not self.lenient:
            raise err
        self.errors.append(err)
        self._log.warning("Recovered from %s: %s", code, message)

    def _annotate(
        self, exc: DasError, frame: _Frame, fld: str | None = None
    ) -> DasError:
        ctx = dict(exc.context or {})
        ctx.setdefault("path", str(self.path))
        ctx.setdefault("offset", self._cursor.offset)
        ctx.setdefault("line", self._cursor.line)
        ctx.setdefault("scope", frame.name)
        ctx.setdefault("scope_offset", frame.offset)
        if fld is not None:
            ctx.setdefault("field", fld)
        exc.context = ctx
        return exc
