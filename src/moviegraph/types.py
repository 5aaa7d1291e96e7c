"""Shared dataclasses and protocols for the movie question-answering pipelines."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Protocol


@dataclass(frozen=True)
class PipelineConfig:
    """Configuration shared by the Cypher and vector pipelines."""

    vector_top_k: int = 5
    cypher_result_limit: int = 10
    history_window: int = 5
    vector_index_name: str = "moviePlots"
    neo4j_timeout_seconds: float = 15.0
    neo4j_fetch_size: int = 100


@dataclass(frozen=True)
class Document:
    """A retrieved text chunk plus the metadata linking it back to a graph node."""

    page_content: str
    metadata: dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {"page_content": self.page_content, "metadata": dict(self.metadata)}

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Document:
        metadata = data.get("metadata") or {}
        return cls(page_content=str(data.get("page_content", "")), metadata=dict(metadata))  # type: ignore[arg-type]


@dataclass(frozen=True)
class ConversationTurn:
    """One user turn: the raw input and the standalone question derived from it."""

    session_id: str
    input: str
    rephrased_question: str


@dataclass(frozen=True)
class HistoryEntry:
    """A persisted (:Response) node."""

    id: str
    source: str
    input: str
    rephrased_question: str | None
    output: str
    cypher: str | None = None
    created_at: str | None = None


class PipelineError(RuntimeError):
    """Raised when a pipeline step fails."""

    def __init__(self, message: str, *, step: str | None = None):
        super().__init__(message)
        self.step = step


@dataclass(frozen=True)
class RetrievalContext:
    """Accumulator threaded through the retrieval steps.

    Each step widens the record with new keys; keys that are already set are
    never overwritten.
    """

    turn: ConversationTurn
    documents: list[Document] | None = None
    ids: list[str] | None = None
    context: str | None = None
    output: str | None = None
    response_id: str | None = None

    def assign(self, **values: object) -> RetrievalContext:
        known = {f.name for f in fields(self)}
        for key in values:
            if key not in known or key == "turn":
                raise PipelineError(f"Unknown accumulator key: {key}")
            if getattr(self, key) is not None:
                raise PipelineError(f"Accumulator key '{key}' is already set")
        return replace(self, **values)

    def require(self, key: str) -> object:
        value = getattr(self, key)
        if value is None:
            raise PipelineError(f"Accumulator key '{key}' has not been set yet")
        return value


class GraphSchemaSource(Protocol):
    """Describes the live graph schema."""

    def get_schema(self) -> str:  # pragma: no cover - interface only
        ...


class GraphQueryRunner(Protocol):
    """Runs parameterised Cypher and returns rows as dictionaries."""

    def query(self, cypher: str, params: dict[str, object] | None = None) -> list[dict[str, object]]:  # pragma: no cover
        ...


class CypherExecutor(Protocol):
    """Executes read-only Cypher and returns rows as dictionaries."""

    def execute_read(self, cypher: str) -> list[dict[str, object]]:  # pragma: no cover - interface only
        ...


class LanguageModel(Protocol):
    """Turns a rendered prompt into generated text."""

    def invoke(self, prompt: str) -> str:  # pragma: no cover - interface only
        ...


class Embeddings(Protocol):
    """Maps a text to its embedding vector."""

    def embed_query(self, text: str) -> list[float]:  # pragma: no cover - interface only
        ...

    def embed_documents(self, texts: list[str]) -> list[list[float]]:  # pragma: no cover - interface only
        ...


class DocumentRetriever(Protocol):
    """Similarity search over the vector index."""

    def retrieve(self, query: str, k: int = 5) -> list[Document]:  # pragma: no cover - interface only
        ...


class AnswerGenerator(Protocol):
    """Produces the final natural-language answer from retrieved context."""

    def invoke(self, *, question: str, context: str) -> str:  # pragma: no cover - interface only
        ...


class QuestionRephraser(Protocol):
    """Rewrites a conversational input into a standalone question."""

    def rephrase(self, input: str, history: list[HistoryEntry]) -> str:  # pragma: no cover - interface only
        ...


class HistoryStore(Protocol):
    """Persists and reads conversation turns."""

    def save_history(
        self,
        session_id: str,
        source: str,
        input: str,
        rephrased_question: str,
        output: str,
        ids: list[str],
        cypher: str | None = None,
    ) -> str:  # pragma: no cover - interface only
        ...

    def get_history(self, session_id: str, limit: int | None = None) -> list[HistoryEntry]:  # pragma: no cover
        ...


class CypherValidator(Protocol):
    """Validates and repairs generated Cypher before it is executed."""

    def validate_cypher(self, cypher: str) -> str:  # pragma: no cover - interface only
        ...


class TraceSink(Protocol):
    """Receives step-wise trace data emitted during pipeline execution."""

    def record(self, step: str, data: dict[str, object]) -> None:  # pragma: no cover - interface only
        ...


def with_context_trace(trace: TraceSink | None, context: dict[str, object]) -> TraceSink | None:
    """Utility: if a trace sink is provided, wrap it to inject a static context.

    Returns the wrapped sink, or None if trace is None.
    """
    if trace is None:
        return None
    # Local import to avoid a circular import at module load time
    from .trace import ContextTraceSink  # noqa: WPS433

    return ContextTraceSink(trace, context)
