"""Neo4j adapter: live schema description plus read-only query execution."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from neo4j import GraphDatabase, ManagedTransaction, unit_of_work

from .types import PipelineConfig

logger = logging.getLogger(__name__)

NODE_PROPERTIES_QUERY = """
CALL db.schema.nodeTypeProperties()
YIELD nodeLabels, propertyName, propertyTypes
WHERE propertyName IS NOT NULL
RETURN nodeLabels, propertyName, propertyTypes
"""

REL_PROPERTIES_QUERY = """
CALL db.schema.relTypeProperties()
YIELD relType, propertyName, propertyTypes
WHERE propertyName IS NOT NULL
RETURN relType, propertyName, propertyTypes
"""

RELATIONSHIP_PATTERNS_QUERY = """
MATCH (a)-[r]->(b)
WITH DISTINCT labels(a) AS start_labels, type(r) AS rel_type, labels(b) AS end_labels
UNWIND start_labels AS start
UNWIND end_labels AS end
RETURN DISTINCT start, rel_type, end
ORDER BY start, rel_type, end
"""

# Internal bookkeeping labels that should not be offered to the LLM.
EXCLUDED_LABELS = {"Session", "Response"}
EXCLUDED_RELATIONSHIPS = {"HAS_RESPONSE", "LAST_RESPONSE", "NEXT", "CONTEXT"}


def _clean_type_name(raw: str) -> str:
    # relType comes back as ":`ACTED_IN`"
    return raw.lstrip(":").strip("`")


def _format_property_type(types: list[str] | None) -> str:
    if not types:
        return "ANY"
    return "|".join(t.upper().replace("STRINGARRAY", "LIST<STRING>") for t in types)


def format_schema(
    node_properties: list[dict[str, object]],
    rel_properties: list[dict[str, object]],
    relationships: list[dict[str, object]],
) -> str:
    """Render schema query results into the text block used in prompts."""

    nodes: dict[str, list[str]] = {}
    for row in node_properties:
        labels = row.get("nodeLabels") or []
        prop = f"{row['propertyName']}: {_format_property_type(row.get('propertyTypes'))}"  # type: ignore[arg-type]
        for label in labels:  # type: ignore[union-attr]
            if label in EXCLUDED_LABELS:
                continue
            props = nodes.setdefault(label, [])
            if prop not in props:
                props.append(prop)

    rels: dict[str, list[str]] = {}
    for row in rel_properties:
        rel_type = _clean_type_name(str(row["relType"]))
        if rel_type in EXCLUDED_RELATIONSHIPS:
            continue
        prop = f"{row['propertyName']}: {_format_property_type(row.get('propertyTypes'))}"  # type: ignore[arg-type]
        props = rels.setdefault(rel_type, [])
        if prop not in props:
            props.append(prop)

    patterns: list[str] = []
    for row in relationships:
        if row["rel_type"] in EXCLUDED_RELATIONSHIPS:
            continue
        if row["start"] in EXCLUDED_LABELS or row["end"] in EXCLUDED_LABELS:
            continue
        patterns.append(f"(:{row['start']})-[:{row['rel_type']}]->(:{row['end']})")

    lines = ["Node properties:"]
    lines.extend(f"{label} {{{', '.join(props)}}}" for label, props in sorted(nodes.items()))
    lines.append("Relationship properties:")
    lines.extend(f"{rel} {{{', '.join(props)}}}" for rel, props in sorted(rels.items()))
    lines.append("The relationships:")
    lines.extend(patterns)
    return "\n".join(lines)


@dataclass
class Neo4jGraph:
    """Thin wrapper over the Neo4j driver shared by every collaborator that needs the graph."""

    uri: str
    user: str
    password: str
    config: PipelineConfig
    database: str | None = None

    def __post_init__(self) -> None:
        self._driver = GraphDatabase.driver(self.uri, auth=(self.user, self.password))

    def close(self) -> None:
        self._driver.close()

    def get_schema(self) -> str:
        """Describe labels, relationship types and properties as they are right now."""
        node_properties = self.query(NODE_PROPERTIES_QUERY)
        rel_properties = self.query(REL_PROPERTIES_QUERY)
        relationships = self.query(RELATIONSHIP_PATTERNS_QUERY)
        schema = format_schema(node_properties, rel_properties, relationships)
        logger.debug("Fetched graph schema (%d chars)", len(schema))
        return schema

    def query(self, cypher: str, params: dict[str, object] | None = None) -> list[dict[str, object]]:
        """Run a statement in an auto-commit transaction and return plain dict rows."""
        with self._driver.session(database=self.database) as session:
            result = session.run(cypher, params or {})
            return [record.data() for record in result]

    def execute_read(self, cypher: str) -> list[dict[str, object]]:
        """Run generated Cypher in a read transaction bounded by the configured timeout."""
        work = unit_of_work(timeout=self.config.neo4j_timeout_seconds)(_read_rows)
        with self._driver.session(database=self.database, fetch_size=self.config.neo4j_fetch_size) as session:
            return session.execute_read(work, cypher)


def _read_rows(tx: ManagedTransaction, cypher: str) -> list[dict[str, object]]:
    result = tx.run(cypher)
    return [record.data() for record in result]
