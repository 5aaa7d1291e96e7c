from __future__ import annotations

from dataclasses import dataclass, field

import pytest
from fastapi.testclient import TestClient

from api import main
from moviegraph.cypher_retrieval import CypherRetrievalResult
from moviegraph.types import HistoryEntry, PipelineError


class StubChain:
    def __init__(self, result=None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls: list[object] = []

    def _call(self, value):
        self.calls.append(value)
        if self.error is not None:
            raise self.error
        return self.result

    invoke = _call
    run = _call

    def with_trace(self, trace):
        return self


class StubHistory:
    def __init__(self, entries: list[HistoryEntry] | None = None):
        self.entries = entries or []
        self.requests: list[tuple[str, int | None]] = []

    def get_history(self, session_id, limit=None):
        self.requests.append((session_id, limit))
        return self.entries


class StubRephraser:
    def rephrase(self, input, history):
        return f"standalone: {input}"


@dataclass
class StubComponents:
    cypher_chain: StubChain = field(default_factory=lambda: StubChain("MATCH (m:Movie) RETURN m LIMIT 10"))
    vector_chain: StubChain = field(default_factory=lambda: StubChain("vector answer"))
    cypher_retrieval_chain: StubChain = field(default_factory=StubChain)
    history: StubHistory = field(default_factory=StubHistory)
    rephraser: StubRephraser = field(default_factory=StubRephraser)
    trace: object | None = None


@pytest.fixture
def app_client() -> TestClient:
    with TestClient(main.app) as client:
        yield client
    main.app.dependency_overrides.clear()


def _use(components: StubComponents) -> StubComponents:
    main.app.dependency_overrides[main.get_components] = lambda: components
    return components


def test_healthz_endpoint(app_client: TestClient) -> None:
    response = app_client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_cypher_endpoint_returns_generated_statement(app_client: TestClient) -> None:
    components = _use(StubComponents())

    response = app_client.post("/cypher", json={"question": "  What role did Tom Hanks play in Toy Story? "})

    assert response.status_code == 200
    payload = response.json()
    assert payload["cypher"] == "MATCH (m:Movie) RETURN m LIMIT 10"
    assert payload["run_id"]
    assert components.cypher_chain.calls == ["What role did Tom Hanks play in Toy Story?"]


def test_cypher_endpoint_rejects_empty_question(app_client: TestClient) -> None:
    _use(StubComponents())

    response = app_client.post("/cypher", json={"question": ""})

    assert response.status_code == 422


def test_vector_endpoint_uses_given_rephrased_question(app_client: TestClient) -> None:
    components = _use(StubComponents())

    response = app_client.post(
        "/vector",
        json={"session_id": "s1", "input": "his best ones?", "rephrased_question": "best Tom Hanks movies"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["output"] == "vector answer"
    assert payload["session_id"] == "s1"
    assert payload["rephrased_question"] == "best Tom Hanks movies"
    assert components.history.requests == []


def test_vector_endpoint_rephrases_from_history(app_client: TestClient) -> None:
    components = _use(StubComponents())

    response = app_client.post("/vector", json={"input": "his best ones?"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["rephrased_question"] == "standalone: his best ones?"
    assert components.history.requests == [(payload["session_id"], None)]


def test_cypher_answer_endpoint_returns_rows(app_client: TestClient) -> None:
    result = CypherRetrievalResult(
        output="Woody",
        cypher="MATCH (m:Movie) RETURN m.title AS title LIMIT 10",
        rows=[{"title": "Toy Story"}],
        response_id="r1",
    )
    _use(StubComponents(cypher_retrieval_chain=StubChain(result)))

    response = app_client.post("/cypher/answer", json={"session_id": "s1", "input": "Toy Story?", "rephrased_question": "Q"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["output"] == "Woody"
    assert payload["rows"] == [{"title": "Toy Story"}]
    assert payload["cypher"].startswith("MATCH")


def test_pipeline_error_returns_400(app_client: TestClient) -> None:
    _use(StubComponents(cypher_retrieval_chain=StubChain(error=PipelineError("unsafe", step="validate_cypher"))))

    response = app_client.post("/cypher/answer", json={"input": "Toy Story?", "rephrased_question": "Q"})

    assert response.status_code == 400
    assert response.json()["detail"] == {"message": "unsafe", "step": "validate_cypher", "error_type": "PipelineError"}


def test_collaborator_error_returns_500(app_client: TestClient) -> None:
    _use(StubComponents(vector_chain=StubChain(error=ConnectionError("index offline"))))

    response = app_client.post("/vector", json={"input": "x", "rephrased_question": "y"})

    assert response.status_code == 500
    assert response.json()["detail"]["error_type"] == "ConnectionError"


def test_history_endpoint(app_client: TestClient) -> None:
    entry = HistoryEntry(id="r1", source="vector", input="hi", rephrased_question="hi", output="hello")
    components = _use(StubComponents(history=StubHistory([entry])))

    response = app_client.get("/history/s1", params={"limit": 3})

    assert response.status_code == 200
    assert response.json()[0]["output"] == "hello"
    assert components.history.requests == [("s1", 3)]


def test_history_endpoint_failure_returns_structured_500(app_client: TestClient) -> None:
    class FailingHistory(StubHistory):
        def get_history(self, session_id, limit=None):
            raise ConnectionError("neo4j unavailable")

    events: list[tuple[str, dict[str, object]]] = []

    class ListTrace:
        def record(self, step, data):
            events.append((step, data))

    _use(StubComponents(history=FailingHistory(), trace=ListTrace()))

    response = app_client.get("/history/s1")

    assert response.status_code == 500
    detail = response.json()["detail"]
    assert detail["error_type"] == "ConnectionError"
    assert detail["message"] == "neo4j unavailable"
    assert events[0][0] == "error"
    assert events[0][1]["session_id"] == "s1"
