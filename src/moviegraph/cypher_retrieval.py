"""Cypher retrieval chain: generate, guard and execute Cypher, then answer from the rows."""

from __future__ import annotations

import json
from dataclasses import dataclass
from time import perf_counter

from .cypher_chain import CypherGenerationChain
from .trace import elapsed_ms, record_step
from .types import (
    AnswerGenerator,
    ConversationTurn,
    CypherExecutor,
    CypherValidator,
    HistoryStore,
    TraceSink,
)

CYPHER_SOURCE = "cypher"


def extract_row_ids(rows: list[dict[str, object]]) -> list[str]:
    """Collect the ``_id`` column of every row that has one."""
    return [str(row["_id"]) for row in rows if row.get("_id") is not None]


def rows_to_json(rows: list[dict[str, object]]) -> str:
    return json.dumps(rows, ensure_ascii=False, default=str)


@dataclass(frozen=True)
class CypherRetrievalResult:
    output: str
    cypher: str
    rows: list[dict[str, object]]
    response_id: str


@dataclass
class CypherRetrievalChain:
    """Answer a conversation turn from the rows of a generated Cypher query."""

    generator: CypherGenerationChain
    validator: CypherValidator
    executor: CypherExecutor
    answer_generator: AnswerGenerator
    history: HistoryStore

    trace: TraceSink | None = None

    def invoke(self, turn: ConversationTurn) -> str:
        return self.run(turn).output

    def run(self, turn: ConversationTurn) -> CypherRetrievalResult:
        question = turn.rephrased_question
        step = "generate_cypher"
        started = perf_counter()
        try:
            cypher_draft = self.generator.invoke(question)

            step = "validate_cypher"
            started = perf_counter()
            cypher = self.validator.validate_cypher(cypher_draft)
            record_step(self.trace, step, {"cypher": cypher, "duration_ms": elapsed_ms(started)})

            step = "execute_read"
            started = perf_counter()
            rows = self.executor.execute_read(cypher)
            record_step(
                self.trace,
                step,
                {"row_count": len(rows), "rows_preview": rows[:3], "duration_ms": elapsed_ms(started)},
            )

            step = "generate_answer"
            started = perf_counter()
            output = self.answer_generator.invoke(question=question, context=rows_to_json(rows))
            record_step(self.trace, step, {"answer_len": len(output), "duration_ms": elapsed_ms(started)})

            step = "save_history"
            started = perf_counter()
            response_id = self.history.save_history(
                turn.session_id,
                CYPHER_SOURCE,
                turn.input,
                question,
                output,
                extract_row_ids(rows),
                cypher=cypher,
            )
            record_step(self.trace, step, {"response_id": response_id, "duration_ms": elapsed_ms(started)})
        except Exception as exc:
            record_step(
                self.trace,
                "error",
                {"step": step, "error": str(exc), "duration_ms": elapsed_ms(started)},
            )
            raise

        return CypherRetrievalResult(output=output, cypher=cypher, rows=rows, response_id=response_id)

    def with_trace(self, trace: TraceSink | None) -> CypherRetrievalChain:
        return CypherRetrievalChain(
            generator=self.generator.with_trace(trace),
            validator=self.validator,
            executor=self.executor,
            answer_generator=self.answer_generator,
            history=self.history,
            trace=trace,
        )
