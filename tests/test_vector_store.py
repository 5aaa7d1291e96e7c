"""Tests for the Neo4j vector index retriever."""

from __future__ import annotations

from moviegraph.types import PipelineConfig
from moviegraph.vector_store import RETRIEVAL_QUERY, Neo4jVectorRetriever


class StubEmbeddings:
    def __init__(self):
        self.queries: list[str] = []

    def embed_query(self, text: str) -> list[float]:
        self.queries.append(text)
        return [0.1, 0.2, 0.3]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:  # pragma: no cover - unused
        return [self.embed_query(t) for t in texts]


class StubGraph:
    def __init__(self, rows: list[dict[str, object]]):
        self.rows = rows
        self.calls: list[tuple[str, dict[str, object]]] = []

    def query(self, cypher: str, params: dict[str, object] | None = None) -> list[dict[str, object]]:
        self.calls.append((cypher, params or {}))
        return self.rows


def _row(index: int) -> dict[str, object]:
    return {
        "text": f"Plot {index}",
        "score": 1.0 - index / 10,
        "metadata": {"_id": f"4:abc:{index}", "title": f"Movie {index}", "tmdbId": str(index)},
    }


def test_retrieve_embeds_query_and_maps_rows_in_rank_order():
    graph = StubGraph([_row(i) for i in range(3)])
    embeddings = StubEmbeddings()
    retriever = Neo4jVectorRetriever(graph=graph, embeddings=embeddings, config=PipelineConfig())

    documents = retriever.retrieve("best Tom Hanks movies", k=5)

    assert embeddings.queries == ["best Tom Hanks movies"]
    cypher, params = graph.calls[0]
    assert cypher == RETRIEVAL_QUERY
    assert params == {"index_name": "moviePlots", "k": 5, "embedding": [0.1, 0.2, 0.3]}
    assert [doc.page_content for doc in documents] == ["Plot 0", "Plot 1", "Plot 2"]
    assert documents[0].metadata == {"_id": "4:abc:0", "title": "Movie 0", "tmdbId": "0", "score": 1.0}


def test_retrieve_never_returns_more_than_k():
    graph = StubGraph([_row(i) for i in range(8)])
    retriever = Neo4jVectorRetriever(
        graph=graph,
        embeddings=StubEmbeddings(),
        config=PipelineConfig(vector_index_name="plots"),
    )

    documents = retriever.retrieve("space", k=5)

    assert len(documents) == 5
    assert graph.calls[0][1]["index_name"] == "plots"


def test_retrieval_query_exposes_element_id():
    assert "_id: elementId(node)" in RETRIEVAL_QUERY
