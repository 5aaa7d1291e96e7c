"""Conversation history persisted as (:Session)-[:HAS_RESPONSE]->(:Response) nodes."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .types import GraphQueryRunner, HistoryEntry, PipelineConfig, PipelineError

logger = logging.getLogger(__name__)

SAVE_HISTORY_QUERY = """
MERGE (session:Session {id: $session_id})
CREATE (response:Response {
    id: randomUUID(),
    createdAt: datetime(),
    source: $source,
    input: $input,
    output: $output,
    rephrasedQuestion: $rephrased_question,
    cypher: $cypher,
    ids: $ids
})
CREATE (session)-[:HAS_RESPONSE]->(response)
WITH session, response
CALL {
    WITH session, response
    OPTIONAL MATCH (session)-[lrel:LAST_RESPONSE]->(last:Response)
    FOREACH (_ IN CASE WHEN last IS NULL THEN [] ELSE [1] END | CREATE (last)-[:NEXT]->(response))
    DELETE lrel
    RETURN count(last) AS previous
}
CREATE (session)-[:LAST_RESPONSE]->(response)
WITH response
CALL {
    WITH response
    UNWIND $ids AS id
    MATCH (context)
    WHERE elementId(context) = id
    CREATE (response)-[:CONTEXT]->(context)
    RETURN count(*) AS contexts
}
RETURN response.id AS id
"""

GET_HISTORY_QUERY = """
MATCH (:Session {id: $session_id})-[:HAS_RESPONSE]->(response:Response)
RETURN
    response.id AS id,
    response.source AS source,
    response.input AS input,
    response.rephrasedQuestion AS rephrased_question,
    response.output AS output,
    response.cypher AS cypher,
    toString(response.createdAt) AS created_at
ORDER BY response.createdAt DESC
LIMIT $limit
"""


@dataclass
class Neo4jHistoryStore:
    """Save and read conversation turns for a session."""

    graph: GraphQueryRunner
    config: PipelineConfig

    def save_history(
        self,
        session_id: str,
        source: str,
        input: str,
        rephrased_question: str,
        output: str,
        ids: list[str],
        cypher: str | None = None,
    ) -> str:
        rows = self.graph.query(
            SAVE_HISTORY_QUERY,
            {
                "session_id": session_id,
                "source": source,
                "input": input,
                "rephrased_question": rephrased_question,
                "output": output,
                "cypher": cypher,
                "ids": list(ids),
            },
        )
        if not rows or not rows[0].get("id"):
            raise PipelineError("History store did not return a response id", step="save_history")
        response_id = str(rows[0]["id"])
        logger.info("Saved %s response %s for session %s (%d context node(s))", source, response_id, session_id, len(ids))
        return response_id

    def get_history(self, session_id: str, limit: int | None = None) -> list[HistoryEntry]:
        """Return the most recent turns of a session, oldest first."""
        rows = self.graph.query(
            GET_HISTORY_QUERY,
            {"session_id": session_id, "limit": limit if limit is not None else self.config.history_window},
        )
        entries = [
            HistoryEntry(
                id=str(row["id"]),
                source=str(row.get("source") or ""),
                input=str(row.get("input") or ""),
                rephrased_question=row.get("rephrased_question"),  # type: ignore[arg-type]
                output=str(row.get("output") or ""),
                cypher=row.get("cypher"),  # type: ignore[arg-type]
                created_at=row.get("created_at"),  # type: ignore[arg-type]
            )
            for row in rows
        ]
        entries.reverse()
        return entries
