import struct
from pathlib import Path

import pytest

from libdas.format.constants import SIGNATURE, SIGNATURE_SIZE, BufferType
from libdas.format.errors import (
    E_COUNT_MISMATCH,
    E_SIGNATURE,
    E_SYNTAX,
    FormatError,
    WriterError,
)
from libdas.format.reader import ScopeReader
from libdas.format.writer import ScopeWriter
from libdas.model import Buffer, MeshPrimitive, Model, Properties, Scene, SceneNode


def _body(path: Path) -> bytes:
    data = path.read_bytes()
    assert data[:SIGNATURE_SIZE] == SIGNATURE
    return data[SIGNATURE_SIZE:]


def test_properties_omit_empty_strings_and_zero_default_scene(tmp_path: Path):
    out = tmp_path / "p.das"
    with ScopeWriter(out) as w:
        w.write_properties(Properties(author="A", moddate=5))
    assert _body(out) == (
        b"PROPERTIES\n"
        b'AUTHOR: "A"\n'
        b"MODDATE: " + struct.pack("<Q", 5) + b"\n"
        b"COMPRESSION: \x00\n"
        b"ENDSCOPE\n"
    )


def test_default_scene_written_when_nonzero(tmp_path: Path):
    out = tmp_path / "p.das"
    with ScopeWriter(out) as w:
        w.write_properties(Properties(moddate=0, compression=True, default_scene=2))
    body = _body(out)
    assert b"COMPRESSION: \x01\n" in body
    assert b"DEFAULTSCENE: " + struct.pack("<I", 2) + b"\n" in body


def test_buffer_spans_are_written_in_order(tmp_path: Path):
    out = tmp_path / "b.das"
    spans = [memoryview(bytearray(b"ab")), b"", b"cd"]
    with ScopeWriter(out) as w:
        w.write_buffer(Buffer(BufferType.VERTEX, spans))
    assert _body(out) == (
        b"BUFFER\n"
        b"BUFFERTYPE: " + struct.pack("<I", int(BufferType.VERTEX)) + b"\n"
        b"DATALEN: " + struct.pack("<I", 4) + b"\n"
        b"DATA: abcd\n"
        b"ENDSCOPE\n"
    )


def test_empty_arrays_keep_their_count(tmp_path: Path):
    out = tmp_path / "m.das"
    with ScopeWriter(out) as w:
        w.write_model(Model(name="m"))
    body = _body(out)
    assert b"PRIMITIVECOUNT: " + struct.pack("<I", 0) + b"\n" in body
    assert b"PRIMITIVES" not in body
    assert b"TRANSFORM: " in body


def test_morph_weight_count_mismatch(tmp_path: Path):
    prim = MeshPrimitive(morph_targets=[0, 1], morph_weights=[0.5])
    with ScopeWriter(tmp_path / "x.das") as w:
        with pytest.raises(WriterError) as info:
            w.write_primitive(prim)
    assert info.value.code == E_COUNT_MISMATCH


def test_quote_in_string_is_rejected(tmp_path: Path):
    with pytest.raises(WriterError) as info:
        with ScopeWriter(tmp_path / "x.das") as w:
            w.write_model(Model(name='say "hi"'))
    assert info.value.code == E_SYNTAX


def test_interrupted_write_leaves_unreadable_file(tmp_path: Path):
    out = tmp_path / "x.das"
    with pytest.raises(RuntimeError):
        with ScopeWriter(out) as w:
            w.write_properties(Properties(author="A", moddate=0))
            raise RuntimeError("producer failed")
    assert out.read_bytes()[:SIGNATURE_SIZE] == b"\x00" * SIGNATURE_SIZE
    with pytest.raises(FormatError) as info:
        ScopeReader(out).parse()
    assert info.value.code == E_SIGNATURE


def test_signature_written_up_front_without_placeholder(tmp_path: Path):
    out = tmp_path / "x.das"
    w = ScopeWriter(out, placeholder_signature=False)
    w.write_properties(Properties(moddate=0))
    w.close()
    assert out.read_bytes()[:SIGNATURE_SIZE] == SIGNATURE
    assert w.bytes_written == len(out.read_bytes())


def test_node_ids_are_always_written(tmp_path: Path):
    out = tmp_path / "s.das"
    with ScopeWriter(out) as w:
        w.write_scene(Scene(name="s", nodes=[SceneNode(name="n")]))
    body = _body(out)
    assert b"MESH: " + b"\xff" * 4 + b"\n" in body
    assert b"SKELETON: " + b"\xff" * 4 + b"\n" in body
    assert w.scope_count == 2
