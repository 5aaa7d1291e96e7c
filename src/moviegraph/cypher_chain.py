"""Question -> Cypher generation chain.

The chain fetches the live graph schema on every call, renders the fixed
Cypher prompt, sends it to the language model and returns the completion as
trimmed plain text. It does not check that the result is valid Cypher; run it
through a ``CypherValidator`` before executing it against the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter

from .prompts import CYPHER_GENERATION_PROMPT_TEMPLATE
from .trace import elapsed_ms, record_step
from .types import GraphSchemaSource, LanguageModel, TraceSink


def render_cypher_prompt(question: str, schema: str) -> str:
    return CYPHER_GENERATION_PROMPT_TEMPLATE.format(schema=schema, question=question)


@dataclass
class CypherGenerationChain:
    """Generate a Cypher statement for a natural-language movie question."""

    graph: GraphSchemaSource
    llm: LanguageModel
    trace: TraceSink | None = None

    def invoke(self, question: str) -> str:
        step = "get_schema"
        started = perf_counter()
        try:
            schema = self.graph.get_schema()
            record_step(self.trace, step, {"schema_len": len(schema), "duration_ms": elapsed_ms(started)})

            prompt = render_cypher_prompt(question, schema)

            step = "generate_cypher"
            started = perf_counter()
            completion = self.llm.invoke(prompt)
        except Exception as exc:
            record_step(
                self.trace,
                "error",
                {"step": step, "error": str(exc), "duration_ms": elapsed_ms(started)},
            )
            raise

        cypher = completion.strip()
        record_step(self.trace, step, {"question": question, "cypher": cypher, "duration_ms": elapsed_ms(started)})
        return cypher

    def with_trace(self, trace: TraceSink | None) -> CypherGenerationChain:
        return CypherGenerationChain(graph=self.graph, llm=self.llm, trace=trace)
