"""Rule-based guard applied to generated Cypher before it reaches the database."""

from __future__ import annotations

import re
from dataclasses import dataclass

from .types import PipelineConfig, PipelineError

FORBIDDEN_KEYWORDS = (
    "CREATE",
    "MERGE",
    "SET",
    "DELETE",
    "REMOVE",
    "CALL",
    "LOAD",
    "DROP",
    "DETACH",
    "FOREACH",
)

LIMIT_PATTERN = re.compile(r"\bLIMIT\s+(\d+)", re.IGNORECASE)
RETURN_CLAUSE_PATTERN = re.compile(r"\bRETURN\b", re.IGNORECASE)
PARAMETER_PATTERN = re.compile(r"\$[A-Za-z_][A-Za-z0-9_]*")
CODE_FENCE_PATTERN = re.compile(r"```[a-zA-Z]*\s*\n([\s\S]*?)```")


def strip_code_fence(text: str) -> str:
    stripped = text.strip()
    match = CODE_FENCE_PATTERN.search(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def mask_string_literals(text: str) -> str:
    """Blank out the contents of single/double-quoted strings, keeping every offset.

    Handles Cypher-style doubled quotes and backslash escapes. Quote characters
    stay in place so positions found in the masked text map onto ``text``.
    """
    out = list(text)
    quote: str | None = None
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if quote is None:
            if ch in ("'", '"'):
                quote = ch
            i += 1
            continue
        if ch == "\\":
            out[i : i + 2] = [" "] * len(out[i : i + 2])
            i += 2
            continue
        if ch == quote:
            if i + 1 < n and text[i + 1] == quote:
                out[i] = out[i + 1] = " "
                i += 2
                continue
            quote = None
        else:
            out[i] = " "
        i += 1
    return "".join(out)


@dataclass
class RuleBasedValidator:
    """Reject write queries and clamp result size of generated Cypher."""

    config: PipelineConfig

    def validate_cypher(self, cypher: str) -> str:
        text = strip_code_fence(cypher).rstrip(";").strip()
        if not text:
            raise PipelineError("Generated Cypher is empty", step="validate_cypher")

        # String literals such as 'Call Me by Your Name' must not trip the keyword scan.
        scan_text = mask_string_literals(text)

        if PARAMETER_PATTERN.search(scan_text):
            raise PipelineError(
                "Parameterized queries are not supported; inline literal values (no $parameters).",
                step="validate_cypher",
            )
        self._check_forbidden_keywords(scan_text)
        if not RETURN_CLAUSE_PATTERN.search(scan_text):
            raise PipelineError("Cypher query must include a RETURN clause", step="validate_cypher")
        return self._enforce_limit(text, scan_text)

    def _check_forbidden_keywords(self, text: str) -> None:
        upper_text = text.upper()
        for keyword in FORBIDDEN_KEYWORDS:
            if re.search(rf"\b{keyword}\b", upper_text):
                raise PipelineError(f"Forbidden keyword detected: {keyword}", step="validate_cypher")

    def _enforce_limit(self, text: str, masked: str) -> str:
        max_limit = self.config.cypher_result_limit
        matches = list(LIMIT_PATTERN.finditer(masked))
        last_return = list(RETURN_CLAUSE_PATTERN.finditer(masked))[-1].end()
        capped = any(match.start() > last_return for match in matches)

        # Clamp from the end so earlier spans stay valid.
        for match in reversed(matches):
            if int(match.group(1)) > max_limit:
                start, end = match.span(1)
                text = f"{text[:start]}{max_limit}{text[end:]}"
        if not capped:
            # A LIMIT inside WITH does not bound the final rows.
            text = f"{text}\nLIMIT {max_limit}"
        return text

