"""Trace sinks for the retrieval chains, plus small helpers the chains share."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from time import perf_counter

import psycopg

from .types import TraceSink

logger = logging.getLogger(__name__)

TRACE_TABLE = "moviegraph_traces"


def _event(step: str, data: dict[str, object]) -> dict[str, object]:
    return {"timestamp": datetime.now(UTC).isoformat(), "step": step, **data}


def _dumps(payload: dict[str, object]) -> str:
    # Documents and rows can carry neo4j temporal values.
    return json.dumps(payload, ensure_ascii=False, default=str)


class JsonlTraceSink:
    """Append one JSON object per event to a file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def record(self, step: str, data: dict[str, object]) -> None:
        line = _dumps(_event(step, data)) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line)
        except OSError:
            logger.debug("Could not write trace event to %s", self._path, exc_info=True)


class StdoutTraceSink:
    def record(self, step: str, data: dict[str, object]) -> None:
        print(f"TRACE {step}: {_dumps(_event(step, data))}")


class CompositeTraceSink:
    """Fan each event out to every wrapped sink, in order."""

    def __init__(self, *sinks: TraceSink) -> None:
        self._sinks = sinks

    def record(self, step: str, data: dict[str, object]) -> None:
        for sink in self._sinks:
            sink.record(step, data)


class ContextTraceSink:
    """Merge a fixed context (``run_id``, ``session_id``) into every event."""

    def __init__(self, sink: TraceSink, context: dict[str, object]) -> None:
        self._sink = sink
        self._context = dict(context)

    def record(self, step: str, data: dict[str, object]) -> None:
        self._sink.record(step, {**self._context, **data})


class PostgresTraceSink:
    """Store events as JSONB rows.

    Table layout:
      create table if not exists moviegraph_traces (
        id bigserial primary key,
        run_id text,
        session_id text,
        recorded_at timestamptz not null default now(),
        step text not null,
        payload jsonb not null
      );
    """

    def __init__(self, dsn: str) -> None:
        self._dsn = dsn

    def record(self, step: str, data: dict[str, object]) -> None:
        run_id = data.get("run_id")
        session_id = data.get("session_id")
        row = (
            run_id if isinstance(run_id, str) else None,
            session_id if isinstance(session_id, str) else None,
            step,
            _dumps(_event(step, data)),
        )
        try:
            with psycopg.connect(self._dsn, autocommit=True) as conn:
                conn.execute(
                    f"insert into {TRACE_TABLE} (run_id, session_id, step, payload) values (%s, %s, %s, %s::jsonb)",
                    row,
                )
        except psycopg.Error:
            logger.warning("Failed to persist trace event %r", step, exc_info=True)


def record_step(trace: TraceSink | None, step: str, data: dict[str, object]) -> None:
    """Send one event to ``trace`` if set; sink errors are logged, not raised."""
    if trace is None:
        return
    try:
        trace.record(step, data)
    except Exception:
        logger.debug("Trace sink failed for step %r", step, exc_info=True)


def elapsed_ms(started: float) -> int:
    return int((perf_counter() - started) * 1000)


def daily_trace_path(base: Path) -> Path:
    """``<base>/YYYYMMDD.jsonl`` for today (UTC)."""
    return base.resolve() / datetime.now(UTC).strftime("%Y%m%d.jsonl")
