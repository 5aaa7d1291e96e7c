"""FastAPI wrapper around the movie question pipelines."""

from __future__ import annotations

import os
import time
import traceback
import uuid
from datetime import UTC, datetime
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from moviegraph import ConversationTurn, PipelineError
from moviegraph.settings import Components, build_components, build_trace_sink, load_settings
from moviegraph.types import TraceSink, with_context_trace


class CypherRequest(BaseModel):
    question: str = Field(..., min_length=1, description="Natural-language movie question")


class CypherResponse(BaseModel):
    cypher: str
    run_id: str


class TurnRequest(BaseModel):
    session_id: str | None = Field(default=None, description="Conversation session id; generated when omitted")
    input: str = Field(..., min_length=1, description="Raw user input")
    rephrased_question: str | None = Field(
        default=None, description="Standalone question; rephrased from session history when omitted"
    )


class TurnResponse(BaseModel):
    output: str
    session_id: str
    rephrased_question: str
    run_id: str


class CypherAnswerResponse(TurnResponse):
    cypher: str
    rows: list[dict[str, object]]


class HistoryItem(BaseModel):
    id: str
    source: str
    input: str
    rephrased_question: str | None
    output: str
    cypher: str | None
    created_at: str | None


@lru_cache(maxsize=1)
def build_app_components() -> Components:
    settings = load_settings(require_credentials=True)
    return build_components(settings, trace=build_trace_sink(settings))


def get_components() -> Components:
    return build_app_components()


app = FastAPI(title="MovieGraph API", version="0.1.0")

allowed_origins = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _new_run_id() -> str:
    return os.getenv("TRACE_RUN_ID_OVERRIDE") or uuid.uuid4().hex


def _http_error(exc: Exception, trace: TraceSink | None, details: dict[str, object]) -> HTTPException:
    step = getattr(exc, "step", None)
    error_details = {
        **details,
        "error": str(exc),
        "error_type": type(exc).__name__,
        "error_step": step or "unknown",
    }
    if not isinstance(exc, PipelineError):
        error_details["traceback"] = traceback.format_exc()
    if trace is not None:
        trace.record("error", error_details)

    detail_response = {"message": str(exc), "step": step, "error_type": type(exc).__name__}
    status_code = 400 if isinstance(exc, PipelineError) else 500
    return HTTPException(status_code=status_code, detail=detail_response)


def _resolve_turn(body: TurnRequest, components: Components) -> ConversationTurn:
    session_id = body.session_id or uuid.uuid4().hex
    user_input = body.input.strip()
    rephrased = (body.rephrased_question or "").strip()
    if not rephrased:
        history = components.history.get_history(session_id)
        rephrased = components.rephraser.rephrase(user_input, history)
    return ConversationTurn(session_id=session_id, input=user_input, rephrased_question=rephrased)


@app.get("/healthz", response_model=dict[str, str])
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.head("/healthz")
async def healthz_head():
    return Response(status_code=200)


@app.post("/cypher", response_model=CypherResponse)
def generate_cypher(body: CypherRequest, components: Annotated[Components, Depends(get_components)]) -> CypherResponse:
    run_id = _new_run_id()
    trace = with_context_trace(components.trace, {"run_id": run_id})
    started = time.perf_counter()
    try:
        cypher = components.cypher_chain.with_trace(trace).invoke(body.question.strip())
    except Exception as exc:
        raise _http_error(
            exc,
            trace,
            {"question": body.question.strip(), "duration_ms": int((time.perf_counter() - started) * 1000)},
        ) from exc
    return CypherResponse(cypher=cypher, run_id=run_id)


@app.post("/vector", response_model=TurnResponse)
def vector_turn(body: TurnRequest, components: Annotated[Components, Depends(get_components)]) -> TurnResponse:
    run_id = _new_run_id()
    trace = with_context_trace(components.trace, {"run_id": run_id})
    started_at = datetime.now(UTC).isoformat()
    try:
        turn = _resolve_turn(body, components)
        output = components.vector_chain.with_trace(trace).invoke(turn)
    except Exception as exc:
        raise _http_error(exc, trace, {"started_at": started_at, "input": body.input.strip()}) from exc
    return TurnResponse(
        output=output,
        session_id=turn.session_id,
        rephrased_question=turn.rephrased_question,
        run_id=run_id,
    )


@app.post("/cypher/answer", response_model=CypherAnswerResponse)
def cypher_turn(body: TurnRequest, components: Annotated[Components, Depends(get_components)]) -> CypherAnswerResponse:
    run_id = _new_run_id()
    trace = with_context_trace(components.trace, {"run_id": run_id})
    started_at = datetime.now(UTC).isoformat()
    try:
        turn = _resolve_turn(body, components)
        result = components.cypher_retrieval_chain.with_trace(trace).run(turn)
    except Exception as exc:
        raise _http_error(exc, trace, {"started_at": started_at, "input": body.input.strip()}) from exc
    return CypherAnswerResponse(
        output=result.output,
        session_id=turn.session_id,
        rephrased_question=turn.rephrased_question,
        run_id=run_id,
        cypher=result.cypher,
        rows=result.rows,
    )


@app.get("/history/{session_id}", response_model=list[HistoryItem])
def history(
    session_id: str,
    components: Annotated[Components, Depends(get_components)],
    limit: int | None = None,
) -> list[HistoryItem]:
    trace = with_context_trace(components.trace, {"run_id": _new_run_id()})
    try:
        entries = components.history.get_history(session_id, limit=limit)
    except Exception as exc:
        raise _http_error(exc, trace, {"session_id": session_id, "limit": limit}) from exc
    return [
        HistoryItem(
            id=entry.id,
            source=entry.source,
            input=entry.input,
            rephrased_question=entry.rephrased_question,
            output=entry.output,
            cypher=entry.cypher,
            created_at=entry.created_at,
        )
        for entry in entries
    ]
