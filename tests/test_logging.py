"""Tests for the gridcalc structured event logging system."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from gridcalc.cells import LiteralCell


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def sink(project_dir: Path):
    from gridcalc.logging.sink import EventSink

    return EventSink(project_dir)


def _read_lines(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


# ---------------------------------------------------------------------------
# A) Event schema
# ---------------------------------------------------------------------------


class TestGridcalcEvent:
    def test_event_defaults(self):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        evt = GridcalcEvent(
            level=EventLevel.info,
            event_type=EventType.sheet_evaluated,
            message="hello",
        )
        assert evt.schema_version == 1
        assert evt.ts.endswith("Z")
        assert evt.level == "info"
        assert evt.event_type == "sheet_evaluated"
        assert evt.context == {}
        assert evt.error_code is None

    def test_make_cell_event_attribution(self):
        from gridcalc.logging.events import EventLevel, EventType, make_cell_event

        evt = make_cell_event(
            EventType.cell_eval_error,
            EventLevel.warning,
            "Division by zero",
            cell="B2",
            sheet="Budget",
            error_code="DIV0",
            extra={"formula": "=1/0"},
        )
        assert evt.context == {"cell": "B2", "sheet": "Budget", "formula": "=1/0"}
        assert evt.error_code == "DIV0"

    def test_truncate_context(self):
        from gridcalc.logging.events import truncate_context

        out = truncate_context({"s": "x" * 300, "l": list(range(60)), "n": {"s": "y" * 300}, "k": 5})
        assert out["s"].endswith("...[truncated]")
        assert len(out["s"]) == 256 + len("...[truncated]")
        assert len(out["l"]) == 51
        assert out["l"][-1] == "...[10 more]"
        assert out["n"]["s"].endswith("...[truncated]")
        assert out["k"] == 5


# ---------------------------------------------------------------------------
# B) Sink
# ---------------------------------------------------------------------------


class TestEventSink:
    def test_creates_log_dirs(self, sink, project_dir: Path):
        assert (project_dir / "logs").is_dir()
        assert (project_dir / "logs" / "sheets").is_dir()

    def test_write_global_and_sheet(self, sink, project_dir: Path):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        evt = GridcalcEvent(level=EventLevel.info, event_type=EventType.cell_updated, context={"cell": "A1"})
        sink.write(evt, sheet="Sheet1")

        global_lines = _read_lines(project_dir / "logs" / "events.ndjson")
        sheet_lines = _read_lines(project_dir / "logs" / "sheets" / "Sheet1.ndjson")
        assert len(global_lines) == 1
        assert global_lines == sheet_lines
        assert global_lines[0]["event_type"] == "cell_updated"

    def test_unsafe_sheet_name_skips_sheet_log(self, sink, project_dir: Path):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        evt = GridcalcEvent(level=EventLevel.info, event_type=EventType.sheet_evaluated)
        sink.write(evt, sheet="../escape")
        assert (project_dir / "logs" / "events.ndjson").exists()
        assert list((project_dir / "logs" / "sheets").iterdir()) == []
        assert sink.read_sheet_log("../escape") == []

    def test_read_global_filters_most_recent_first(self, sink):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        for i in range(3):
            sink.write(
                GridcalcEvent(
                    level=EventLevel.warning if i == 1 else EventLevel.info,
                    event_type=EventType.cell_eval_error,
                    message=f"m{i}",
                    context={"cell": f"A{i + 1}", "sheet": "S"},
                )
            )
        assert [e["message"] for e in sink.read_global()] == ["m2", "m1", "m0"]
        assert [e["message"] for e in sink.read_global(level="warning")] == ["m1"]
        assert [e["message"] for e in sink.read_global(cell="A3")] == ["m2"]
        assert len(sink.read_global(limit=2)) == 2
        assert sink.read_global(sheet="other") == []

    def test_tail_read_drops_partial_line(self, project_dir: Path):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent
        from gridcalc.logging.sink import EventSink

        small = EventSink(project_dir, tail_bytes=400)
        for i in range(20):
            small.write(GridcalcEvent(level=EventLevel.info, event_type=EventType.sheet_evaluated, message=f"m{i}"))
        events = small.read_global()
        assert 0 < len(events) < 20
        assert events[0]["message"] == "m19"

    def test_corrupt_lines_skipped(self, sink, project_dir: Path):
        path = project_dir / "logs" / "events.ndjson"
        path.write_text('{"message": "ok"}\nnot json\n\n')
        assert sink.read_global() == [{"message": "ok"}]


# ---------------------------------------------------------------------------
# C) emit helpers
# ---------------------------------------------------------------------------


class TestEmit:
    def test_emit_without_sink_is_noop(self, project_dir: Path):
        from gridcalc.logging import EventType, emit_info, get_sink

        assert get_sink() is None
        emit_info(EventType.sheet_evaluated, "nothing", {"sheet": "S"})
        assert not (project_dir / "logs").exists()

    def test_set_log_dir_routes_events(self, project_dir: Path):
        from gridcalc.logging import EventLevel, EventType, emit, get_sink, make_cell_event, set_log_dir

        set_log_dir(project_dir)
        event = make_cell_event(
            EventType.cell_eval_error, EventLevel.warning, "bad", cell="A1", error_code="REF"
        )
        emit(event, sheet="S")
        events = get_sink().read_global()
        assert events[0]["level"] == "warning"
        assert events[0]["error_code"] == "REF"
        assert get_sink().read_sheet_log("S")[0]["message"] == "bad"

    def test_missing_attribution_downgrades_to_warning(self, project_dir: Path):
        from gridcalc.logging import EventType, emit_info, get_sink, set_log_dir

        set_log_dir(project_dir)
        emit_info(EventType.cell_updated, "no context", {"sheet": "S"})
        event = get_sink().read_global()[0]
        assert event["level"] == "warning"
        assert event["context"]["_missing_attribution"] == ["cell"]

    def test_error_level_kept(self, project_dir: Path):
        from gridcalc.logging import EventLevel, EventType, emit, get_sink, make_cell_event, set_log_dir

        set_log_dir(project_dir)
        emit(make_cell_event(EventType.cycle_detected, EventLevel.error, "loop", cell="A1", error_code="CYCLE"))
        assert get_sink().read_global()[0]["level"] == "error"

    def test_emit_never_raises(self, project_dir: Path, monkeypatch, capsys):
        from gridcalc.logging import EventType, emit_info, get_sink, set_log_dir
        from gridcalc.logging import events as events_mod

        set_log_dir(project_dir)

        def _broken(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(get_sink(), "write", _broken)
        monkeypatch.setattr(events_mod, "_last_stderr_ts", 0.0)
        monkeypatch.setattr(events_mod.time, "monotonic", lambda: 1000.0)
        emit_info(EventType.sheet_evaluated, "x", {"sheet": "S"})
        assert "logging failed" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# D) Engine integration
# ---------------------------------------------------------------------------


class TestEngineEvents:
    def test_sheet_evaluated_event(self, project_dir: Path, make_sheet):
        from gridcalc.engine import Engine
        from gridcalc.logging import get_sink, set_log_dir

        set_log_dir(project_dir)
        Engine().evaluate_sheet(make_sheet({"A1": 1, "A2": "=A1/0"}, name="Budget"))

        events = get_sink().read_sheet_log("Budget")
        types = [e["event_type"] for e in events]
        assert types == ["cell_eval_error", "sheet_evaluated"]
        assert events[0]["context"]["cell"] == "A2"
        assert events[0]["error_code"] == "DIV0"
        assert events[1]["context"] == {"sheet": "Budget", "formula_cells": 1, "errors": 1}

    def test_cycle_detected_event(self, project_dir: Path, make_sheet):
        from gridcalc.engine import Engine
        from gridcalc.logging import get_sink, set_log_dir

        set_log_dir(project_dir)
        Engine().evaluate_sheet(make_sheet({"A1": "=A1"}))
        cycles = get_sink().read_global(event_type="cycle_detected")
        assert len(cycles) == 1
        assert cycles[0]["error_code"] == "CYCLE"

    def test_cell_updated_event(self, project_dir: Path, make_sheet):
        from gridcalc.engine import Engine
        from gridcalc.logging import get_sink, set_log_dir

        sheet = make_sheet({"A1": 1, "B1": "=A1+1"})
        engine = Engine()
        engine.evaluate_sheet(sheet)
        set_log_dir(project_dir)
        engine.update_cell(sheet, "A1", LiteralCell(value=2))
        event = get_sink().read_global(event_type="cell_updated")[0]
        assert event["level"] == "info"
        assert event["context"]["cell"] == "A1"
        assert event["context"]["recomputed"] == ["B1"]

    def test_parse_error_event_on_edit(self, project_dir: Path, make_sheet):
        from gridcalc.cells import CellEdit
        from gridcalc.engine import Engine
        from gridcalc.logging import get_sink, set_log_dir

        set_log_dir(project_dir)
        Engine().apply_edit(make_sheet({}), CellEdit(addr="C3", kind="formula", formula="=SUM("))
        event = get_sink().read_global(event_type="formula_parse_error")[0]
        assert event["context"]["cell"] == "C3"
        assert event["context"]["formula"] == "=SUM("
        assert event["error_code"] == "PARSE"
