"""Value types exchanged by the summary pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from aiss.gate.ratelimit import RateDecision
from aiss.summary.errors import SummaryError

MAX_SOURCES = 5


@dataclass(frozen=True)
class Source:
    """One cited article."""

    title: str
    url: str
    excerpt: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "url": self.url, "excerpt": self.excerpt}


@dataclass(frozen=True)
class SummaryResult:
    """A normalized answer: non-empty HTML plus at most MAX_SOURCES citations."""

    answer_html: str
    sources: tuple[Source, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "answer_html": self.answer_html,
            "sources": [s.to_dict() for s in self.sources],
        }


@dataclass(frozen=True)
class ClientInfo:
    """Identity of the caller as seen by the gating layer."""

    ip: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class SummaryResponse:
    """What the HTTP layer (or CLI) renders for one summary request."""

    result: SummaryResult | None = None
    error: SummaryError | None = None
    cache_hit: bool | None = None
    results_count: int = 0
    rate: RateDecision | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None

    @property
    def http_status(self) -> int:
        return self.error.http_status if self.error else 200

    def to_dict(self) -> dict[str, Any]:
        """JSON body: ``{answer_html, error, error_code?, sources, results_count, cache_hit}``."""
        body: dict[str, Any] = {
            "answer_html": self.result.answer_html if self.result else "",
            "error": self.error.message if self.error else "",
            "sources": [s.to_dict() for s in self.result.sources] if self.result else [],
            "results_count": self.results_count,
            "cache_hit": self.cache_hit,
        }
        if self.error:
            body["error_code"] = self.error.code
        return body
