"""Write/read round trips and chunk-size independence of the reader."""

import struct
from dataclasses import replace
from pathlib import Path

import pytest

from graph_factory import TRICKY, sample_graph
from libdas.api import read_das, write_das
from libdas.format.constants import SCOPE_DELIMITER, SIGNATURE
from libdas.format.reader import ScopeReader
from libdas.format.writer import ScopeWriter
from libdas.model import validate_graph


def test_sample_graph_is_valid():
    report = validate_graph(sample_graph())
    assert report.ok, report.errors
    assert report.warnings == []


def test_roundtrip_preserves_every_entity(tmp_path: Path):
    graph = sample_graph()
    out = tmp_path / "crate.das"
    written = write_das(graph, out)
    data = out.read_bytes()
    assert written == len(data)
    assert data[:16] == SIGNATURE
    back = read_das(out)
    assert back == graph
    assert not back.default_scene_synthesized
    assert back.buffers[4].tobytes() == TRICKY


def test_rewrite_is_byte_identical(tmp_path: Path):
    first = tmp_path / "a.das"
    second = tmp_path / "b.das"
    write_das(sample_graph(), first)
    write_das(read_das(first), second)
    assert first.read_bytes() == second.read_bytes()


@pytest.mark.parametrize("chunk_size", [1, 7, 16, 33, 64, 4096])
def test_chunk_size_does_not_change_result(tmp_path: Path, chunk_size: int):
    out = tmp_path / "crate.das"
    write_das(sample_graph(), out)
    reference = ScopeReader(out, chunk_size=4096).parse()
    assert ScopeReader(out, chunk_size=chunk_size).parse() == reference


def test_delimiter_straddling_every_chunk_boundary(tmp_path: Path):
    out = tmp_path / "crate.das"
    write_das(sample_graph(), out)
    data = out.read_bytes()
    reference = ScopeReader(out).parse()
    first = data.find(SCOPE_DELIMITER)
    assert first > 0
    for split in range(1, len(SCOPE_DELIMITER)):
        reader = ScopeReader(out, chunk_size=first + split)
        assert reader.parse() == reference, split


def test_scope_count_matches_writer(tmp_path: Path):
    out = tmp_path / "crate.das"
    with ScopeWriter(out) as writer:
        writer.write_graph(sample_graph())
    reader = ScopeReader(out)
    reader.parse()
    assert reader.scope_count == writer.scope_count
    # 1 properties + 5 buffers + 1 primitive + 1 morph + 1 model
    # + 1 animation (2 keyframes) + 1 skeleton (2 joints) + 1 scene (2 nodes)
    assert reader.scope_count == 18


def _f32(value: float) -> float:
    return struct.unpack("<f", struct.pack("<f", value))[0]


def test_floats_are_held_at_stored_precision(tmp_path: Path):
    graph = sample_graph()
    model = graph.models[0]
    graph.models[0] = replace(model, transform=(0.1,) + model.transform[1:])
    graph.primitives[0] = replace(graph.primitives[0], morph_weights=[0.3])
    joints = graph.skeletons[0].joints
    joints[1] = replace(joints[1], scale=0.7, translation=(0.2, 0.4, 0.6))

    assert graph.models[0].transform[0] == _f32(0.1)
    assert graph.primitives[0].morph_weights == [_f32(0.3)]
    assert joints[1].scale == _f32(0.7)

    out = tmp_path / "floats.das"
    write_das(graph, out)
    assert read_das(out) == graph
