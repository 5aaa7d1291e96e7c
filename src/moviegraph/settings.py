"""Environment-driven settings and wiring of the pipeline collaborators."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .cypher_chain import CypherGenerationChain
from .cypher_retrieval import CypherRetrievalChain
from .gemini import (
    GeminiAnswerGenerator,
    GeminiConfig,
    GeminiEmbeddings,
    GeminiLanguageModel,
    GeminiQuestionRephraser,
)
from .graph import Neo4jGraph
from .history import Neo4jHistoryStore
from .trace import CompositeTraceSink, JsonlTraceSink, PostgresTraceSink, StdoutTraceSink, daily_trace_path
from .types import PipelineConfig, TraceSink
from .validator import RuleBasedValidator
from .vector_chain import VectorRetrievalChain
from .vector_store import Neo4jVectorRetriever

TRUTHY = {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    """Runtime configuration loaded from environment variables."""

    neo4j_uri: str
    neo4j_user: str
    neo4j_password: str
    neo4j_database: str | None
    gemini: GeminiConfig
    pipeline: PipelineConfig
    trace_dir: Path
    trace_dsn: str | None
    trace_stdout: bool


def load_settings(*, require_credentials: bool = False) -> Settings:
    """Read settings from the environment (and a ``.env`` file if present).

    Environment variables:
      - NEO4J_URI, NEO4J_USER, NEO4J_PASSWORD, NEO4J_DATABASE
      - GOOGLE_API_KEY, GEMINI_MODEL, GEMINI_TEMPERATURE, GEMINI_EMBEDDING_MODEL
      - VECTOR_INDEX_NAME, VECTOR_TOP_K, CYPHER_RESULT_LIMIT
      - TRACE_LOG_DIR, TRACE_DATABASE_URL (or DATABASE_URL), TRACE_STDOUT
    """
    load_dotenv()

    neo4j_uri = os.getenv("NEO4J_URI", "").strip()
    neo4j_user = os.getenv("NEO4J_USER", "").strip()
    neo4j_password = os.getenv("NEO4J_PASSWORD", "").strip()
    if require_credentials:
        for name, value in (("NEO4J_URI", neo4j_uri), ("NEO4J_USER", neo4j_user), ("NEO4J_PASSWORD", neo4j_password)):
            if not value:
                raise RuntimeError(f"{name} is not set; please configure it before starting")

    gemini = GeminiConfig(
        model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        temperature=float(os.getenv("GEMINI_TEMPERATURE", "0")),
        api_key=os.getenv("GOOGLE_API_KEY"),
        embedding_model=os.getenv("GEMINI_EMBEDDING_MODEL", "text-embedding-004"),
    )

    pipeline = PipelineConfig(
        vector_top_k=int(os.getenv("VECTOR_TOP_K", "5")),
        cypher_result_limit=int(os.getenv("CYPHER_RESULT_LIMIT", "10")),
        vector_index_name=os.getenv("VECTOR_INDEX_NAME", "moviePlots"),
    )

    return Settings(
        neo4j_uri=neo4j_uri or "bolt://localhost:7687",
        neo4j_user=neo4j_user or "neo4j",
        neo4j_password=neo4j_password or "password",
        neo4j_database=os.getenv("NEO4J_DATABASE") or None,
        gemini=gemini,
        pipeline=pipeline,
        trace_dir=Path(os.getenv("TRACE_LOG_DIR", str(Path("logs") / "traces"))),
        trace_dsn=os.getenv("TRACE_DATABASE_URL") or os.getenv("DATABASE_URL"),
        trace_stdout=os.getenv("TRACE_STDOUT", "0").strip().lower() in TRUTHY,
    )


def build_trace_sink(settings: Settings) -> TraceSink:
    """Compose trace sinks: JSONL (local debug) + optional Postgres + optional stdout."""
    trace_sink: TraceSink = JsonlTraceSink(daily_trace_path(settings.trace_dir))
    if settings.trace_dsn:
        trace_sink = CompositeTraceSink(trace_sink, PostgresTraceSink(settings.trace_dsn))
    if settings.trace_stdout:
        trace_sink = CompositeTraceSink(trace_sink, StdoutTraceSink())
    return trace_sink


@dataclass
class Components:
    """Every collaborator and chain, built once per process."""

    graph: Neo4jGraph
    history: Neo4jHistoryStore
    rephraser: GeminiQuestionRephraser
    cypher_chain: CypherGenerationChain
    vector_chain: VectorRetrievalChain
    cypher_retrieval_chain: CypherRetrievalChain
    trace: TraceSink | None

    def close(self) -> None:
        self.graph.close()


def build_components(settings: Settings, trace: TraceSink | None = None) -> Components:
    graph = Neo4jGraph(
        uri=settings.neo4j_uri,
        user=settings.neo4j_user,
        password=settings.neo4j_password,
        config=settings.pipeline,
        database=settings.neo4j_database,
    )
    history = Neo4jHistoryStore(graph=graph, config=settings.pipeline)
    answer_generator = GeminiAnswerGenerator(config=settings.gemini)

    cypher_chain = CypherGenerationChain(graph=graph, llm=GeminiLanguageModel(config=settings.gemini), trace=trace)
    vector_chain = VectorRetrievalChain(
        config=settings.pipeline,
        retriever=Neo4jVectorRetriever(
            graph=graph,
            embeddings=GeminiEmbeddings(config=settings.gemini),
            config=settings.pipeline,
        ),
        answer_generator=answer_generator,
        history=history,
        trace=trace,
    )
    cypher_retrieval_chain = CypherRetrievalChain(
        generator=cypher_chain,
        validator=RuleBasedValidator(config=settings.pipeline),
        executor=graph,
        answer_generator=answer_generator,
        history=history,
        trace=trace,
    )

    return Components(
        graph=graph,
        history=history,
        rephraser=GeminiQuestionRephraser(config=settings.gemini),
        cypher_chain=cypher_chain,
        vector_chain=vector_chain,
        cypher_retrieval_chain=cypher_retrieval_chain,
        trace=trace,
    )
