"""Shared fixtures; makes ``src`` importable without installing the package."""

import sys
from pathlib import Path

import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

from moviegraph.types import Document  # noqa: E402


@pytest.fixture(autouse=True)
def isolate_tracing(tmp_path, monkeypatch):
    """No Postgres, no stdout tracing, and JSONL traces under the test's tmp dir."""
    for var in ("TRACE_DATABASE_URL", "DATABASE_URL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("TRACE_STDOUT", "0")
    monkeypatch.setenv("TRACE_LOG_DIR", str(tmp_path / "traces"))


@pytest.fixture
def movie_documents() -> list[Document]:
    titles = ["Toy Story", "Forrest Gump", "Cast Away", "Apollo 13", "Big"]
    return [
        Document(
            page_content=f"Plot of {title}",
            metadata={"_id": f"4:abc:{index}", "title": title, "score": 0.9 - index * 0.01},
        )
        for index, title in enumerate(titles)
    ]
