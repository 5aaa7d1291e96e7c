"""Gemini-powered adapters for text generation, answers, rephrasing and embeddings."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from google import genai
from google.genai import types as genai_types

from .prompts import ANSWER_GENERATION_PROMPT_TEMPLATE, REPHRASE_QUESTION_PROMPT_TEMPLATE
from .types import HistoryEntry, PipelineError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeminiConfig:
    """Runtime settings for Gemini calls."""

    model: str = "gemini-2.5-flash"
    temperature: float = 0.0
    max_output_tokens: int | None = None
    top_p: float | None = None
    api_key: str | None = None
    embedding_model: str = "text-embedding-004"
    # One attempt means a failed call fails the request.
    max_attempts: int = 1


def _format_history(history: list[HistoryEntry]) -> str:
    if not history:
        return "(no previous messages)"
    lines: list[str] = []
    for entry in history:
        lines.append(f"Human: {entry.input}")
        lines.append(f"AI: {entry.output}")
    return "\n".join(lines)


def _error_details(exc: Exception) -> dict[str, object]:
    details: dict[str, object] = {
        "exception_type": type(exc).__name__,
        "exception_message": str(exc),
    }
    for attr in ("details", "code", "status_code", "reason"):
        if hasattr(exc, attr):
            details[attr] = str(getattr(exc, attr))
    return details


class _GeminiBase:
    def __init__(self, config: GeminiConfig | None = None, client: object | None = None) -> None:
        self.config = config or GeminiConfig()
        if client is not None:
            self._client = client
        else:
            kwargs: dict[str, object] = {}
            if self.config.api_key:
                kwargs["api_key"] = self.config.api_key
            self._client = genai.Client(**kwargs)

    def _build_content_config(self) -> genai_types.GenerateContentConfig:
        return genai_types.GenerateContentConfig(
            temperature=self.config.temperature,
            top_p=self.config.top_p,
            max_output_tokens=self.config.max_output_tokens,
        )

    def _call_model(self, *, prompt: str) -> str:
        """Call the Gemini API, retrying only when ``max_attempts`` allows it."""
        kwargs = {
            "model": self.config.model,
            "contents": [prompt],
            "config": self._build_content_config(),
        }

        attempts = max(1, self.config.max_attempts)
        for attempt in range(attempts):
            try:
                response = self._client.models.generate_content(**kwargs)
            except Exception as exc:
                logger.warning(
                    "Gemini API call failed: %s",
                    {
                        "attempt": attempt + 1,
                        "total_attempts": attempts,
                        "model": self.config.model,
                        "prompt_length": len(prompt),
                        **_error_details(exc),
                    },
                )
                if attempt == attempts - 1:
                    raise
                # Exponential backoff: 1s, 2s, 4s, ...
                time.sleep(2**attempt)
                continue

            text = getattr(response, "text", None)
            if not text:
                raise PipelineError("Gemini response did not include text")
            return text

        raise PipelineError("Gemini API call failed for unknown reason")  # pragma: no cover


class GeminiLanguageModel(_GeminiBase):
    """Plain prompt-in, text-out model used by the Cypher generation chain."""

    def invoke(self, prompt: str) -> str:
        return self._call_model(prompt=prompt)


class GeminiAnswerGenerator(_GeminiBase):
    """Answers a question using only the supplied context."""

    def invoke(self, *, question: str, context: str) -> str:
        prompt = ANSWER_GENERATION_PROMPT_TEMPLATE.format(question=question.strip(), context=context)
        return self._call_model(prompt=prompt).strip()


class GeminiQuestionRephraser(_GeminiBase):
    """Turns a follow-up input into a standalone question using recent history."""

    def rephrase(self, input: str, history: list[HistoryEntry]) -> str:
        if not history:
            return input.strip()
        prompt = REPHRASE_QUESTION_PROMPT_TEMPLATE.format(
            history=_format_history(history),
            input=input.strip(),
        )
        return self._call_model(prompt=prompt).strip()


class GeminiEmbeddings(_GeminiBase):
    """Embeds queries for vector index lookups."""

    def embed_query(self, text: str) -> list[float]:
        response = self._client.models.embed_content(
            model=self.config.embedding_model,
            contents=[text],
        )
        embeddings = getattr(response, "embeddings", None)
        if not embeddings:
            raise PipelineError("Gemini embedding response was empty")
        return list(embeddings[0].values)

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        response = self._client.models.embed_content(
            model=self.config.embedding_model,
            contents=texts,
        )
        embeddings = getattr(response, "embeddings", None) or []
        if len(embeddings) != len(texts):
            raise PipelineError(f"Expected {len(texts)} embeddings, got {len(embeddings)}")
        return [list(item.values) for item in embeddings]
