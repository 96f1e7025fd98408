"""Best-effort parsing of the model's JSON answer.

Pipeline:
  1. Try each strategy in _STRATEGIES in order; the first one that yields a
     JSON object wins:
       structured  content is already a dict (JSON-mode payload)
       direct      json.loads() of the whole text
       fenced      json.loads() of a ```json … ``` block
       brace_span  json.loads() of the text between the first "{" and the last "}"
  2. If ``answer_html`` itself holds a JSON object string (a known upstream
     quirk), unwrap it one level.
  3. normalize_payload() coerces the object into a SummaryResult.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable

from aiss.summary.models import MAX_SOURCES, Source, SummaryResult

FALLBACK_ANSWER_HTML = (
    "<p>An AI summary could not be generated for this search. "
    "Please browse the results below.</p>"
)

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class AnswerParseError(ValueError):
    """Raised when no strategy can turn the model output into a JSON object."""


# ------------------------------------------------------------------
# Strategies
# ------------------------------------------------------------------


def _structured(content: Any) -> dict[str, Any] | None:
    return content if isinstance(content, dict) else None


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except (ValueError, TypeError):
        return None
    return value if isinstance(value, dict) else None


def _direct(content: Any) -> dict[str, Any] | None:
    if not isinstance(content, str):
        return None
    return _loads_object(content.strip())


def _fenced(content: Any) -> dict[str, Any] | None:
    if not isinstance(content, str):
        return None
    match = _FENCE_RE.search(content)
    return _loads_object(match.group(1).strip()) if match else None


def _brace_span(content: Any) -> dict[str, Any] | None:
    if not isinstance(content, str):
        return None
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end <= start:
        return None
    return _loads_object(content[start : end + 1])


_STRATEGIES: list[tuple[str, Callable[[Any], dict[str, Any] | None]]] = [
    ("structured", _structured),
    ("direct", _direct),
    ("fenced", _fenced),
    ("brace_span", _brace_span),
]


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------


def parse_answer(content: Any) -> dict[str, Any]:
    """Extract the answer object from raw model *content* (str or dict).

    Raises:
        AnswerParseError: If no strategy produces a JSON object.
    """
    for name, strategy in _STRATEGIES:
        payload = strategy(content)
        if payload is not None:
            logger.debug("Parsed model answer via %s strategy", name)
            return _unwrap_nested(payload)
    preview = str(content)[:80].replace("\n", " ")
    raise AnswerParseError(f"Model response is not valid JSON: {preview!r}")


def normalize_payload(payload: dict[str, Any]) -> SummaryResult:
    """Coerce a parsed answer object into a SummaryResult.

    Missing or empty ``answer_html`` becomes FALLBACK_ANSWER_HTML; a missing or
    non-list ``results`` (``sources`` is accepted too) becomes an empty list.
    Each citation is reduced to title/url/excerpt strings; entries without a
    url are dropped and at most MAX_SOURCES are kept. Normalizing an already
    normalized result returns an equal result.
    """
    answer = payload.get("answer_html")
    answer_html = answer.strip() if isinstance(answer, str) else ""
    if not answer_html:
        answer_html = FALLBACK_ANSWER_HTML

    raw_sources = payload.get("results")
    if raw_sources is None:
        raw_sources = payload.get("sources")
    if not isinstance(raw_sources, list):
        raw_sources = []

    sources: list[Source] = []
    for item in raw_sources:
        source = _coerce_source(item)
        if source is not None:
            sources.append(source)
        if len(sources) == MAX_SOURCES:
            break

    return SummaryResult(answer_html=answer_html, sources=tuple(sources))


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _unwrap_nested(payload: dict[str, Any]) -> dict[str, Any]:
    """If answer_html is itself a JSON object string, use that object instead."""
    answer = payload.get("answer_html")
    if isinstance(answer, str) and answer.lstrip().startswith("{"):
        inner = _loads_object(answer.strip()) or _brace_span(answer)
        if inner is not None and "answer_html" in inner:
            if "results" not in inner and "results" in payload:
                inner = {**inner, "results": payload["results"]}
            return inner
    return payload


def _coerce_source(item: Any) -> Source | None:
    if not isinstance(item, dict):
        return None
    url = item.get("url")
    if not isinstance(url, str) or not url.strip():
        return None
    title = item.get("title")
    excerpt = item.get("excerpt")
    return Source(
        title=title.strip() if isinstance(title, str) else "",
        url=url.strip(),
        excerpt=excerpt.strip() if isinstance(excerpt, str) else "",
    )
