from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import psycopg

from moviegraph.trace import CompositeTraceSink, JsonlTraceSink, PostgresTraceSink, daily_trace_path, record_step
from moviegraph.types import with_context_trace


class ListSink:
    def __init__(self):
        self.events: list[tuple[str, dict[str, object]]] = []

    def record(self, step: str, data: dict[str, object]) -> None:
        self.events.append((step, data))


def test_daily_trace_path_uses_current_date(tmp_path: Path, monkeypatch) -> None:
    fake_now = datetime(2025, 10, 17)
    monkeypatch.setattr("moviegraph.trace.datetime", type("_DT", (), {"now": staticmethod(lambda tz=None: fake_now)}))

    path = daily_trace_path(tmp_path)

    assert path.parent == tmp_path.resolve()
    assert path.name == "20251017.jsonl"


def test_jsonl_trace_sink_writes_line(tmp_path: Path) -> None:
    trace_file = tmp_path / "nested" / "trace.jsonl"
    sink = JsonlTraceSink(trace_file)

    sink.record("retrieve_documents", {"document_count": 5})

    contents = trace_file.read_text(encoding="utf-8").strip().splitlines()
    assert len(contents) == 1
    payload = json.loads(contents[0])
    assert payload["step"] == "retrieve_documents"
    assert payload["document_count"] == 5


def test_context_and_composite_sinks_fan_out_with_run_id() -> None:
    first, second = ListSink(), ListSink()
    sink = with_context_trace(CompositeTraceSink(first, second), {"run_id": "abc"})

    sink.record("run", {"answer_len": 3})

    assert first.events == second.events == [("run", {"run_id": "abc", "answer_len": 3})]
    assert with_context_trace(None, {"run_id": "abc"}) is None


def test_record_step_ignores_missing_or_failing_sinks() -> None:
    class Broken:
        def record(self, step, data):
            raise ValueError("nope")

    record_step(None, "x", {})
    record_step(Broken(), "x", {})


def test_postgres_trace_sink_inserts_row_and_survives_errors(monkeypatch) -> None:
    executed: list[tuple[str, tuple[object, ...]]] = []

    class FakeConnection:
        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            return False

        def execute(self, sql, params):
            executed.append((sql, params))

    monkeypatch.setattr("moviegraph.trace.psycopg.connect", lambda dsn, autocommit: FakeConnection())
    sink = PostgresTraceSink("postgresql://localhost/traces")

    sink.record("save_history", {"run_id": "r1", "session_id": "s1", "response_id": "abc"})

    sql, params = executed[0]
    assert "moviegraph_traces" in sql
    assert params[:3] == ("r1", "s1", "save_history")
    assert json.loads(params[3])["response_id"] == "abc"

    def refuse(dsn, autocommit):
        raise psycopg.OperationalError("connection refused")

    monkeypatch.setattr("moviegraph.trace.psycopg.connect", refuse)
    sink.record("run", {})
