"""Domain models for the AI Search Summary database layer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Post:
    """A published article in the content index (raw HTML content)."""

    id: int
    title: str
    url: str
    content: str = ""
    excerpt: str = ""
    post_type: str = "post"
    published_at: str = ""


@dataclass(frozen=True)
class SearchDocument:
    """Snapshot of one candidate source document for a single request.

    Produced by the content selector; never persisted by the core.
    """

    id: int
    title: str
    url: str
    excerpt: str
    body: str
    source_type: str = "post"
    published_date: str = ""


@dataclass
class SearchEvent:
    """One append-only search log record.

    cache_hit is None when the request never reached the cache lookup stage.
    """

    query: str
    results_count: int
    ai_success: bool
    ai_error: str = ""
    cache_hit: bool | None = None
    created_at: str | None = None
    id: int | None = None  # set after insert
