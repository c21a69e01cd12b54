from pathlib import Path

from graph_factory import PROPS, sample_graph, write_raw
from libdas.api import inspect_das, write_das
from libdas.format.inspector import check_layout


def test_inspect_written_file(tmp_path: Path):
    out = tmp_path / "crate.das"
    written = write_das(sample_graph(), out)
    info = inspect_das(out, chunk_size=32)

    assert info["file_size"] == written
    assert info["signature"]["magic_ok"]
    assert info["signature"]["magic"] == "44415300"
    assert info["scope_count"] == 18
    assert info["counts"]["buffers"] == 5
    assert info["properties"]["author"] == "A"
    assert not info["default_scene_synthesized"]
    assert info["errors"] == []
    assert check_layout(info) == []

    first = info["scopes"][0]
    assert first == {"name": "PROPERTIES", "offset": 16, "line": 1, "depth": 0}
    names = [(s["name"], s["depth"]) for s in info["scopes"]]
    assert ("KEYFRAME", 1) in names
    assert ("JOINT", 1) in names
    assert names[-1] == ("NODE", 1)


def test_inspect_lists_recovered_errors(tmp_path: Path):
    path = write_raw(tmp_path / "x.das", PROPS + b"ENDSCOPE\n")
    info = inspect_das(path)
    assert [e["code"] for e in info["errors"]] == ["E_SCOPE_IMBALANCE"]
    issues = check_layout(info)
    assert len(issues) == 1
    assert issues[0].startswith("E_SCOPE_IMBALANCE")
