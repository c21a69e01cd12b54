from pathlib import Path

from libdas.api import read_das, write_das
from libdas.format.constants import BufferType
from libdas.model import Buffer, EntityGraph, MeshPrimitive, Properties, validate_graph


def test_zero_length_buffer_roundtrip(tmp_path: Path):
    graph = EntityGraph(
        properties=Properties(moddate=0),
        buffers=[Buffer(BufferType.VERTEX, []), Buffer(BufferType.INDICES, [b""])],
    )
    out = tmp_path / "empty.das"
    write_das(graph, out)
    assert b"DATA: \nENDSCOPE\n" in out.read_bytes()

    back = read_das(out)
    assert [b.data_len for b in back.buffers] == [0, 0]
    assert back.buffers == graph.buffers


def test_reference_into_zero_length_buffer_is_out_of_bounds():
    graph = EntityGraph(
        properties=Properties(moddate=0),
        buffers=[Buffer(BufferType.VERTEX | BufferType.INDICES, [])],
        primitives=[MeshPrimitive(index_buffer_id=0, vertex_buffer_id=0)],
    )
    report = validate_graph(graph)
    assert [e.code for e in report.errors] == ["E_BOUNDS", "E_BOUNDS"]
