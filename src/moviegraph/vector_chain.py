"""Vector retrieval chain: similarity search -> context -> answer -> history.

Each step takes the ``RetrievalContext`` built so far and returns a widened
copy. The chain runs the steps in order and returns only the generated
answer. Collaborator failures propagate unchanged; if any step before the
history write fails, nothing is saved.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from time import perf_counter

from .trace import elapsed_ms, record_step
from .types import (
    AnswerGenerator,
    ConversationTurn,
    Document,
    DocumentRetriever,
    HistoryStore,
    PipelineConfig,
    RetrievalContext,
    TraceSink,
)

VECTOR_SOURCE = "vector"


def extract_document_ids(documents: list[Document]) -> list[str]:
    """Return the ``_id`` of every document, in retrieval order."""
    return [str(document.metadata["_id"]) for document in documents]


def docs_to_json(documents: list[Document]) -> str:
    return json.dumps([document.to_dict() for document in documents], ensure_ascii=False, default=str)


def docs_from_json(text: str) -> list[Document]:
    return [Document.from_dict(item) for item in json.loads(text)]


def retrieve_documents(ctx: RetrievalContext, retriever: DocumentRetriever, k: int) -> RetrievalContext:
    documents = retriever.retrieve(ctx.turn.rephrased_question, k=k)
    return ctx.assign(documents=list(documents))


def derive_context(ctx: RetrievalContext) -> RetrievalContext:
    documents: list[Document] = ctx.require("documents")  # type: ignore[assignment]
    return ctx.assign(ids=extract_document_ids(documents), context=docs_to_json(documents))


def generate_answer(ctx: RetrievalContext, answer_generator: AnswerGenerator) -> RetrievalContext:
    context: str = ctx.require("context")  # type: ignore[assignment]
    output = answer_generator.invoke(question=ctx.turn.rephrased_question, context=context)
    return ctx.assign(output=output)


def save_history(ctx: RetrievalContext, history: HistoryStore, source: str = VECTOR_SOURCE) -> RetrievalContext:
    response_id = history.save_history(
        ctx.turn.session_id,
        source,
        ctx.turn.input,
        ctx.turn.rephrased_question,
        ctx.require("output"),  # type: ignore[arg-type]
        ctx.require("ids"),  # type: ignore[arg-type]
    )
    return ctx.assign(response_id=response_id)


@dataclass
class VectorRetrievalChain:
    """Answer a conversation turn from the movies closest to the rephrased question."""

    config: PipelineConfig
    retriever: DocumentRetriever
    answer_generator: AnswerGenerator
    history: HistoryStore

    trace: TraceSink | None = None

    def invoke(self, turn: ConversationTurn) -> str:
        return self.run(turn).output  # type: ignore[return-value]

    def run(self, turn: ConversationTurn) -> RetrievalContext:
        """Run every step and return the full accumulator."""
        ctx = RetrievalContext(turn=turn)
        record_step(self.trace, "turn", {"session_id": turn.session_id, "rephrased_question": turn.rephrased_question})
        run_started = perf_counter()

        steps = (
            ("retrieve_documents", lambda c: retrieve_documents(c, self.retriever, self.config.vector_top_k)),
            ("derive_context", derive_context),
            ("generate_answer", lambda c: generate_answer(c, self.answer_generator)),
            ("save_history", lambda c: save_history(c, self.history)),
        )
        for name, step in steps:
            step_started = perf_counter()
            try:
                ctx = step(ctx)
            except Exception as exc:
                record_step(
                    self.trace,
                    "error",
                    {"step": name, "error": str(exc), "duration_ms": elapsed_ms(step_started)},
                )
                raise
            record_step(self.trace, name, {**_summarize(name, ctx), "duration_ms": elapsed_ms(step_started)})

        record_step(self.trace, "run", {"response_id": ctx.response_id, "total_duration_ms": elapsed_ms(run_started)})
        return ctx

    def with_trace(self, trace: TraceSink | None) -> VectorRetrievalChain:
        return VectorRetrievalChain(
            config=self.config,
            retriever=self.retriever,
            answer_generator=self.answer_generator,
            history=self.history,
            trace=trace,
        )


def _summarize(step: str, ctx: RetrievalContext) -> dict[str, object]:
    if step == "retrieve_documents":
        return {"document_count": len(ctx.documents or [])}
    if step == "derive_context":
        return {"ids": ctx.ids, "context_len": len(ctx.context or "")}
    if step == "generate_answer":
        return {"answer_len": len(ctx.output or ""), "answer": ctx.output}
    return {"response_id": ctx.response_id}
