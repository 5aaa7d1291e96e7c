"""Load a movies CSV into Neo4j and build the plot embedding vector index.

Expected columns: ``movieId, title, released, imdbRating, tmdbId, plot``
plus the semicolon-separated list columns ``genres``, ``directors`` and
``actors`` (each actor as ``Name:Role``).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from math import ceil
from typing import Any

import pandas as pd
from neo4j import GraphDatabase, ManagedTransaction

from .types import Embeddings, PipelineConfig

logger = logging.getLogger(__name__)

LIST_COLUMNS = ("genres", "directors", "actors")


def chunked(records: list[dict], size: int) -> Iterable[list[dict]]:
    """Yield successive chunks from records with length `size` (last chunk may be smaller)."""
    for i in range(0, len(records), size):
        yield records[i : i + size]


def split_semicolon_list(raw: Any) -> list[str]:
    if raw is None:
        return []
    return [item.strip() for item in str(raw).split(";") if item.strip()]


def parse_actor(raw: str) -> dict[str, str | None]:
    name, _, role = raw.partition(":")
    return {"name": name.strip(), "role": role.strip() or None}


def clean_row(row: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in row.items():
        if isinstance(value, str):
            value = value.strip()
            if value == "":
                value = None
        elif pd.isna(value):
            value = None
        cleaned[key] = value

    for key in LIST_COLUMNS:
        cleaned[key] = split_semicolon_list(cleaned.get(key))
    cleaned["actors"] = [parse_actor(actor) for actor in cleaned["actors"]]

    for key in ("released", "tmdbId", "movieId"):
        if cleaned.get(key) is not None:
            try:
                cleaned[key] = str(int(float(cleaned[key])))
            except (TypeError, ValueError):
                cleaned[key] = str(cleaned[key])
    if cleaned.get("imdbRating") is not None:
        try:
            cleaned["imdbRating"] = float(cleaned["imdbRating"])
        except (TypeError, ValueError):
            cleaned["imdbRating"] = None
    return cleaned


class MovieGraphBuilder:
    def __init__(
        self,
        uri: str,
        user: str,
        password: str,
        embeddings: Embeddings,
        config: PipelineConfig | None = None,
        batch_size: int = 100,
    ) -> None:
        self._driver = GraphDatabase.driver(uri, auth=(user, password))
        self._embeddings = embeddings
        self._config = config or PipelineConfig()
        self._batch_size = batch_size

    def close(self) -> None:
        self._driver.close()

    def run_ingestion(self, csv_path: str, dimensions: int) -> int:
        """Orchestrates the entire ingestion process. Returns the number of movies loaded."""
        logger.info("Creating constraints and vector index %s", self._config.vector_index_name)
        self.create_constraints()
        self.create_vector_index(dimensions)

        records = self.load_csv(csv_path)
        logger.info("Ingesting %d movie(s) from %s", len(records), csv_path)
        self.ingest_movies(records)
        self.embed_plots(records)
        return len(records)

    def create_constraints(self) -> None:
        with self._driver.session() as session:
            queries = [
                "CREATE CONSTRAINT IF NOT EXISTS FOR (m:Movie) REQUIRE m.movieId IS UNIQUE",
                "CREATE CONSTRAINT IF NOT EXISTS FOR (p:Person) REQUIRE p.name IS UNIQUE",
                "CREATE CONSTRAINT IF NOT EXISTS FOR (g:Genre) REQUIRE g.name IS UNIQUE",
                "CREATE CONSTRAINT IF NOT EXISTS FOR (s:Session) REQUIRE s.id IS UNIQUE",
            ]
            for query in queries:
                session.run(query)

    def create_vector_index(self, dimensions: int) -> None:
        index_name = self._config.vector_index_name
        with self._driver.session() as session:
            session.run(
                f"""
                CREATE VECTOR INDEX `{index_name}` IF NOT EXISTS
                FOR (m:Movie) ON m.embedding
                OPTIONS {{indexConfig: {{
                    `vector.dimensions`: $dimensions,
                    `vector.similarity_function`: 'cosine'
                }}}}
                """,
                {"dimensions": dimensions},
            )

    @staticmethod
    def load_csv(csv_path: str) -> list[dict[str, Any]]:
        df = pd.read_csv(csv_path)
        return [clean_row(r) for r in df.to_dict(orient="records")]

    def ingest_movies(self, records: list[dict[str, Any]]) -> None:
        total = len(records)
        if total == 0:
            logger.info("No movies to ingest")
            return
        with self._driver.session() as session:
            num_batches = ceil(total / self._batch_size)
            for idx, batch in enumerate(chunked(records, self._batch_size), start=1):
                logger.info("Sending movie batch %d/%d (size=%d)", idx, num_batches, len(batch))
                session.execute_write(self._create_movies_batch, batch)

    def embed_plots(self, records: list[dict[str, Any]]) -> None:
        with_plots = [r for r in records if r.get("plot")]
        with self._driver.session() as session:
            for batch in chunked(with_plots, self._batch_size):
                vectors = self._embeddings.embed_documents([r["plot"] for r in batch])
                rows = [{"movieId": r["movieId"], "embedding": v} for r, v in zip(batch, vectors)]
                session.execute_write(self._set_embeddings_batch, rows)
        logger.info("Embedded %d plot(s)", len(with_plots))

    @staticmethod
    def _create_movies_batch(tx: ManagedTransaction, rows: list[dict[str, Any]]) -> None:
        tx.run(
            """
            UNWIND $rows AS r
            MERGE (m:Movie {movieId: r.movieId})
            SET m.title = r.title,
                m.released = r.released,
                m.imdbRating = r.imdbRating,
                m.tmdbId = r.tmdbId,
                m.plot = r.plot
            FOREACH (genre IN r.genres |
                MERGE (g:Genre {name: genre})
                MERGE (m)-[:IN_GENRE]->(g))
            FOREACH (director IN r.directors |
                MERGE (p:Person {name: director})
                SET p:Director
                MERGE (p)-[:DIRECTED]->(m))
            FOREACH (actor IN r.actors |
                MERGE (p:Person {name: actor.name})
                SET p:Actor
                MERGE (p)-[rel:ACTED_IN]->(m)
                SET rel.role = actor.role)
            """,
            {"rows": rows},
        )

    @staticmethod
    def _set_embeddings_batch(tx: ManagedTransaction, rows: list[dict[str, Any]]) -> None:
        tx.run(
            """
            UNWIND $rows AS r
            MATCH (m:Movie {movieId: r.movieId})
            CALL db.create.setNodeVectorProperty(m, 'embedding', r.embedding)
            """,
            {"rows": rows},
        )
