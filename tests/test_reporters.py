import io
import json
from pathlib import Path

import pytest
from rich.console import Console

from graph_factory import PROPS, sample_graph, write_raw
from libdas.api import read_das, validate_das, write_das
from libdas.logging import configure_logging, get_logger, step
from libdas.reporting import (
    JsonLinesReporter,
    PlainReporter,
    RichReporter,
    SilentReporter,
    TaskStatus,
    get_reporter,
    set_reporter,
    set_verbosity,
    task,
)


def _events(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def _with_reporter(rep, fn):
    previous = get_reporter()
    set_reporter(rep)
    try:
        return fn()
    finally:
        set_reporter(previous)


def test_jsonl_summaries_for_write_and_read(tmp_path: Path):
    out = tmp_path / "crate.das"
    stream = io.StringIO()

    def run():
        written = write_das(sample_graph(), out)
        read_das(out)
        return written

    written = _with_reporter(JsonLinesReporter(stream), run)
    events = _events(stream)
    summaries = {e["summary_type"]: e for e in events if e["event"] == "summary"}
    assert summaries["write"]["bytes"] == written
    assert summaries["write"]["file"] == "crate.das"
    assert summaries["read"]["scopes"] == 18
    assert summaries["read"]["buffers"] == 5

    ends = [e for e in events if e["event"] == "task_end"]
    assert {e["id"] for e in ends} == {"write.scopes", "read.scopes"}
    write_end = next(e for e in ends if e["id"] == "write.scopes")
    assert write_end["status"] == "success"
    assert write_end["completed"] == write_end["total"] == 12
    assert write_end["bytes"] == written
    assert "current_item" not in write_end


def test_validation_findings_are_reported(tmp_path: Path):
    path = write_raw(tmp_path / "x.das", PROPS + b"ENDSCOPE\n")
    stream = io.StringIO()
    report = _with_reporter(JsonLinesReporter(stream), lambda: validate_das(path))
    assert [e.code for e in report.errors] == ["E_SCOPE_IMBALANCE"]
    events = _events(stream)
    errors = [e for e in events if e.get("level") == "error"]
    assert errors and errors[0]["message"].startswith("E_SCOPE_IMBALANCE")
    assert errors[0]["code"] == "E_SCOPE_IMBALANCE"
    assert errors[0]["path"].startswith("offset ")
    summary = next(e for e in events if e["event"] == "summary")
    assert summary["summary_type"] == "validate"
    assert summary["errors"] == 1


def test_failed_task_is_marked_failed():
    stream = io.StringIO()

    def run():
        with pytest.raises(ValueError):
            with task("t", "Doomed", total=2) as rep:
                rep.advance("t")
                raise ValueError("boom")

    _with_reporter(JsonLinesReporter(stream), run)
    end = [e for e in _events(stream) if e["event"] == "task_end"][0]
    assert end["status"] == TaskStatus.FAILED.name.lower()
    assert end["completed"] == 1


def test_plain_reporter_lines():
    stream = io.StringIO()
    rep = PlainReporter(stream=stream, use_color=False)
    rep.section("Write DAS x.das")
    rep.start_task("w", "Write scopes", total=1)
    rep.advance("w", scopes=3, bytes=120)
    rep.end_task("w")
    rep.summary("write", file="x.das", bytes=120)
    rep.warning("W_UNUSED_BUFFER buffers[0]: unused")
    text = stream.getvalue()
    assert "[Write DAS x.das]" in text
    assert "Write scopes 1/1" in text
    assert "[scopes=3 bytes=120]" in text
    assert "INFO: Write summary: file=x.das bytes=120" in text
    assert "WARN: W_UNUSED_BUFFER" in text


def test_logger_routes_to_active_reporter():
    stream = io.StringIO()

    def run():
        configure_logging(0)
        get_logger().info("hello %s", "world")
        get_logger().warning("careful")
        step("stepping")

    _with_reporter(JsonLinesReporter(stream), run)
    messages = [(e["level"], e["message"]) for e in _events(stream)]
    assert ("info", "hello world") in messages
    assert ("warning", "careful") in messages
    assert ("info", "  -> stepping") in messages


def test_silent_reporter_swallows_output(tmp_path: Path, capsys):
    out = tmp_path / "crate.das"
    _with_reporter(SilentReporter(), lambda: write_das(sample_graph(), out))
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == ""


def test_rich_reporter_renders_tasks_and_summaries(tmp_path: Path):
    buf = io.StringIO()
    rep = RichReporter(console=Console(file=buf, width=120, color_system=None))
    out = tmp_path / "crate.das"
    _with_reporter(rep, lambda: (write_das(sample_graph(), out), read_das(out)))
    text = buf.getvalue()
    assert "✔ Write scopes 12/12" in text
    assert "[scopes=18" in text
    assert "INFO: Write summary: file=crate.das" in text
    assert "Read crate.das" in text
    assert rep.progress is None


def test_plain_reporter_progress_lines_need_verbosity():
    stream = io.StringIO()
    rep = PlainReporter(stream=stream, use_color=False)
    rep.start_task("w", "Write scopes", total=2)
    rep.advance("w", current_item="buffer[0]")
    assert stream.getvalue() == ""
    set_verbosity(1)
    try:
        rep.advance("w", current_item="buffer[1]")
        rep.verbose("detail")
    finally:
        set_verbosity(0)
    assert "Write scopes: buffer[1] (2/2)" in stream.getvalue()
    assert "VERB1: detail" in stream.getvalue()


def test_findings_keep_code_and_path():
    plain_out = io.StringIO()
    plain = PlainReporter(stream=plain_out, use_color=False)
    plain.finding("W_UNUSED_BUFFER", "buffers[2]", "unused", severity="warning")
    assert plain_out.getvalue() == "WARN: W_UNUSED_BUFFER buffers[2]: unused\n"

    json_out = io.StringIO()
    JsonLinesReporter(json_out).finding("E_BOUNDS", "primitives[0]", "past end")
    (event,) = _events(json_out)
    assert event["level"] == "error"
    assert event["code"] == "E_BOUNDS"
    assert event["path"] == "primitives[0]"


def test_jsonl_verbose_carries_level_when_enabled():
    stream = io.StringIO()
    rep = JsonLinesReporter(stream)
    rep.verbose("hidden", level=2)
    set_verbosity(2)
    try:
        rep.verbose("shown", level=2)
    finally:
        set_verbosity(0)
    (event,) = _events(stream)
    assert event["message"] == "shown"
    assert event["level"] == "verbose2"
    assert event["vlevel"] == 2
