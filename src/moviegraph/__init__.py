"""Movie question answering over a Neo4j graph with generated Cypher or vector retrieval."""

from .cypher_chain import CypherGenerationChain, render_cypher_prompt
from .cypher_retrieval import CypherRetrievalChain, CypherRetrievalResult
from .gemini import (
    GeminiAnswerGenerator,
    GeminiConfig,
    GeminiEmbeddings,
    GeminiLanguageModel,
    GeminiQuestionRephraser,
)
from .graph import Neo4jGraph
from .history import Neo4jHistoryStore
from .types import (
    ConversationTurn,
    Document,
    HistoryEntry,
    PipelineConfig,
    PipelineError,
    RetrievalContext,
)
from .validator import RuleBasedValidator
from .vector_chain import VectorRetrievalChain, docs_to_json, extract_document_ids
from .vector_store import Neo4jVectorRetriever

__all__ = [
    "ConversationTurn",
    "CypherGenerationChain",
    "CypherRetrievalChain",
    "CypherRetrievalResult",
    "Document",
    "GeminiAnswerGenerator",
    "GeminiConfig",
    "GeminiEmbeddings",
    "GeminiLanguageModel",
    "GeminiQuestionRephraser",
    "HistoryEntry",
    "Neo4jGraph",
    "Neo4jHistoryStore",
    "Neo4jVectorRetriever",
    "PipelineConfig",
    "PipelineError",
    "RetrievalContext",
    "RuleBasedValidator",
    "VectorRetrievalChain",
    "docs_to_json",
    "extract_document_ids",
    "render_cypher_prompt",
]
