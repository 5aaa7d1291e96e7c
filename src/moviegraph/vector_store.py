"""Similarity search over the Neo4j movie plot vector index."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .types import Document, Embeddings, GraphQueryRunner, PipelineConfig

logger = logging.getLogger(__name__)

RETRIEVAL_QUERY = """
CALL db.index.vector.queryNodes($index_name, $k, $embedding)
YIELD node, score
RETURN
    node.plot AS text,
    score,
    {
        _id: elementId(node),
        title: node.title,
        released: node.released,
        imdbRating: node.imdbRating,
        tmdbId: node.tmdbId,
        source: 'https://www.themoviedb.org/movie/' + node.tmdbId,
        directors: [ (person)-[:DIRECTED]->(node) | person.name ],
        actors: [ (person)-[r:ACTED_IN]->(node) | [person.name, r.role] ]
    } AS metadata
ORDER BY score DESC
"""


def _row_to_document(row: dict[str, object]) -> Document:
    metadata = dict(row.get("metadata") or {})  # type: ignore[call-overload]
    metadata["score"] = row.get("score")
    return Document(page_content=str(row.get("text") or ""), metadata=metadata)


@dataclass
class Neo4jVectorRetriever:
    """Return the movies whose plot embeddings are closest to the query."""

    graph: GraphQueryRunner
    embeddings: Embeddings
    config: PipelineConfig

    def retrieve(self, query: str, k: int = 5) -> list[Document]:
        embedding = self.embeddings.embed_query(query)
        rows = self.graph.query(
            RETRIEVAL_QUERY,
            {"index_name": self.config.vector_index_name, "k": k, "embedding": embedding},
        )
        documents = [_row_to_document(row) for row in rows[:k]]
        logger.debug("Vector search for %r returned %d document(s)", query, len(documents))
        return documents
