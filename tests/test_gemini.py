"""Tests for the Gemini adapters."""

from __future__ import annotations

import pytest

from moviegraph.gemini import (
    GeminiAnswerGenerator,
    GeminiConfig,
    GeminiEmbeddings,
    GeminiLanguageModel,
    GeminiQuestionRephraser,
    _format_history,
)
from moviegraph.types import HistoryEntry, PipelineError


class StubResponse:
    def __init__(self, text: str | None):
        self.text = text


class StubEmbedding:
    def __init__(self, values: list[float]):
        self.values = values


class StubModels:
    def __init__(self, responses: list[str | Exception | None]):
        self._responses = responses
        self.calls: list[dict[str, object]] = []
        self.embed_calls: list[dict[str, object]] = []

    def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return StubResponse(response)

    def embed_content(self, **kwargs):
        self.embed_calls.append(kwargs)
        contents = kwargs["contents"]
        return type("_Embed", (), {"embeddings": [StubEmbedding([float(len(c))]) for c in contents]})()


class StubClient:
    def __init__(self, responses: list[str | Exception | None] | None = None):
        self.models = StubModels(list(responses or []))


class RateLimitException(Exception):
    """Exception that mimics Gemini API rate limit errors."""

    def __init__(self):
        self.code = "429"
        self.status_code = 429
        super().__init__("429 RESOURCE_EXHAUSTED")


def _history() -> list[HistoryEntry]:
    return [HistoryEntry(id="r1", source="vector", input="Who played Woody?", rephrased_question=None,
                         output="Tom Hanks voiced Woody.")]


def test_language_model_sends_prompt_verbatim():
    client = StubClient(["MATCH (m:Movie) RETURN m"])
    llm = GeminiLanguageModel(config=GeminiConfig(model="gemini-test"), client=client)

    assert llm.invoke("PROMPT TEXT") == "MATCH (m:Movie) RETURN m"
    call = client.models.calls[0]
    assert call["model"] == "gemini-test"
    assert call["contents"] == ["PROMPT TEXT"]


def test_missing_text_raises_pipeline_error():
    llm = GeminiLanguageModel(client=StubClient([None]))

    with pytest.raises(PipelineError):
        llm.invoke("prompt")


def test_api_error_propagates_without_retry_by_default():
    error = RateLimitException()
    client = StubClient([error, "never used"])
    llm = GeminiLanguageModel(client=client)

    with pytest.raises(RateLimitException) as excinfo:
        llm.invoke("prompt")

    assert excinfo.value is error
    assert len(client.models.calls) == 1


def test_retries_when_configured(monkeypatch):
    monkeypatch.setattr("moviegraph.gemini.time.sleep", lambda seconds: None)
    client = StubClient([RateLimitException(), "ok"])
    llm = GeminiLanguageModel(config=GeminiConfig(max_attempts=2), client=client)

    assert llm.invoke("prompt") == "ok"
    assert len(client.models.calls) == 2


def test_answer_generator_renders_question_and_context():
    client = StubClient(["  Forrest Gump.  "])
    generator = GeminiAnswerGenerator(client=client)

    answer = generator.invoke(question="best Tom Hanks movies", context='[{"page_content": "Plot"}]')

    assert answer == "Forrest Gump."
    prompt = client.models.calls[0]["contents"][0]
    assert "best Tom Hanks movies" in prompt
    assert '[{"page_content": "Plot"}]' in prompt


def test_rephraser_returns_input_when_history_is_empty():
    client = StubClient([])
    rephraser = GeminiQuestionRephraser(client=client)

    assert rephraser.rephrase("  Who directed Heat? ", []) == "Who directed Heat?"
    assert client.models.calls == []


def test_rephraser_includes_history_in_prompt():
    client = StubClient(["What other movies has Tom Hanks been in?"])
    rephraser = GeminiQuestionRephraser(client=client)

    result = rephraser.rephrase("What else was he in?", _history())

    assert result == "What other movies has Tom Hanks been in?"
    prompt = client.models.calls[0]["contents"][0]
    assert "Human: Who played Woody?" in prompt
    assert "AI: Tom Hanks voiced Woody." in prompt
    assert "What else was he in?" in prompt


def test_format_history_placeholder():
    assert _format_history([]) == "(no previous messages)"


def test_embeddings_use_configured_model():
    client = StubClient()
    embeddings = GeminiEmbeddings(config=GeminiConfig(embedding_model="embed-test"), client=client)

    assert embeddings.embed_query("abc") == [3.0]
    assert embeddings.embed_documents(["a", "bb"]) == [[1.0], [2.0]]
    assert embeddings.embed_documents([]) == []
    assert client.models.embed_calls[0] == {"model": "embed-test", "contents": ["abc"]}
