"""Command-line entry point for the movie question pipelines."""

from __future__ import annotations

import argparse
import logging
import sys
import traceback
import uuid
from datetime import UTC, datetime

from .builder import MovieGraphBuilder
from .gemini import GeminiEmbeddings
from .settings import Components, build_components, build_trace_sink, load_settings
from .trace import CompositeTraceSink, StdoutTraceSink
from .types import ConversationTurn


def _build_components(no_log: bool = False) -> Components:
    settings = load_settings()
    trace = None if no_log else build_trace_sink(settings)
    return build_components(settings, trace=trace)


def _cmd_cypher(components: Components, args: argparse.Namespace) -> int:
    question = " ".join(args.question).strip()
    cypher = components.cypher_chain.invoke(question)
    print(cypher)
    return 0


def _cmd_vector(components: Components, args: argparse.Namespace) -> int:
    user_input = " ".join(args.input).strip()
    session_id = args.session_id or uuid.uuid4().hex
    rephrased = args.rephrased
    if not rephrased:
        history = components.history.get_history(session_id)
        rephrased = components.rephraser.rephrase(user_input, history)

    chain = components.cypher_retrieval_chain if args.source == "cypher" else components.vector_chain
    output = chain.invoke(ConversationTurn(session_id=session_id, input=user_input, rephrased_question=rephrased))
    print(f"Session: {session_id}")
    print(f"Question: {rephrased}\n")
    print("Answer:\n" + output)
    return 0


def _cmd_history(components: Components, args: argparse.Namespace) -> int:
    entries = components.history.get_history(args.session_id, limit=args.limit)
    if not entries:
        print("(no history)")
        return 0
    for entry in entries:
        print(f"[{entry.created_at}] ({entry.source}) {entry.input}")
        print(f"  -> {entry.output}")
    return 0


def _cmd_ingest(args: argparse.Namespace) -> int:
    settings = load_settings()
    embeddings = GeminiEmbeddings(config=settings.gemini)
    dimensions = len(embeddings.embed_query("dimension probe"))
    builder = MovieGraphBuilder(
        uri=settings.neo4j_uri,
        user=settings.neo4j_user,
        password=settings.neo4j_password,
        embeddings=embeddings,
        config=settings.pipeline,
        batch_size=args.batch_size,
    )
    try:
        count = builder.run_ingestion(args.csv_path, dimensions)
    finally:
        builder.close()
    print(f"Loaded {count} movie(s) into index '{settings.pipeline.vector_index_name}'")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="moviegraph", description="Ask questions about movies")
    parser.add_argument("--no-log", action="store_true", help="Disable JSONL trace logging")
    parser.add_argument("--debug", action="store_true", help="Print stack traces and debug logging")
    parser.add_argument("--trace", action="store_true", help="Stream trace events to stdout")
    subparsers = parser.add_subparsers(dest="command", required=True)

    cypher_parser = subparsers.add_parser("cypher", help="Generate a Cypher statement for a question")
    cypher_parser.add_argument("question", nargs="+", help="User question text")
    cypher_parser.set_defaults(handler=_cmd_cypher)

    vector_parser = subparsers.add_parser("vector", help="Answer a conversation turn from retrieved movies")
    vector_parser.add_argument("input", nargs="+", help="User input text")
    vector_parser.add_argument("--session-id", help="Conversation session id (random when omitted)")
    vector_parser.add_argument("--rephrased", help="Standalone question; rephrased from history when omitted")
    vector_parser.add_argument(
        "--source",
        choices=("vector", "cypher"),
        default="vector",
        help="Retrieve context with vector search or with generated Cypher",
    )
    vector_parser.set_defaults(handler=_cmd_vector)

    history_parser = subparsers.add_parser("history", help="Show recent turns of a session")
    history_parser.add_argument("session_id")
    history_parser.add_argument("--limit", type=int, default=None)
    history_parser.set_defaults(handler=_cmd_history)

    ingest_parser = subparsers.add_parser("ingest", help="Load a movies CSV and build the plot vector index")
    ingest_parser.add_argument("csv_path")
    ingest_parser.add_argument("--batch-size", type=int, default=100)

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING)

    if args.command == "ingest":
        return _cmd_ingest(args)

    components = _build_components(no_log=args.no_log)
    if args.trace:
        stdout_sink = StdoutTraceSink()
        trace = stdout_sink if components.trace is None else CompositeTraceSink(components.trace, stdout_sink)
        components.cypher_chain = components.cypher_chain.with_trace(trace)
        components.vector_chain = components.vector_chain.with_trace(trace)
        components.cypher_retrieval_chain = components.cypher_retrieval_chain.with_trace(trace)

    started = datetime.now(UTC).isoformat()
    try:
        return args.handler(components, args)
    except Exception as exc:
        step = getattr(exc, "step", None)
        if step:
            print(f"Error in step '{step}': {exc}", file=sys.stderr)
        else:
            print(f"Error: {exc}", file=sys.stderr)
        if args.debug:
            traceback.print_exc()
        if components.trace is not None:
            components.trace.record(
                "error",
                {
                    "started_at": started,
                    "command": args.command,
                    "error": str(exc),
                    "error_step": step or "unknown",
                    "traceback": traceback.format_exc() if args.debug else None,
                },
            )
        return 1
    finally:
        components.close()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
