"""Summary orchestrator.

One call to SummaryService.summarize() walks a request through:

  NotConfigured? → Validating → BotCheck → IpRateCheck → CacheLookup
    hit  → Done (global budget untouched)
    miss → Select → GlobalRateCheck → ProviderCall → CacheWrite → Done

Every processed request appends exactly one SearchEvent. Bot and per-IP
rejections are not processed requests and write nothing. ``cache_hit`` is
None on events for requests that never reached the cache lookup.

No exception escapes summarize(): an unexpected failure is logged and
returned as a provider_error.
"""

from __future__ import annotations

import logging
import re
import sqlite3
import threading
from dataclasses import dataclass
from typing import Protocol

from aiss.cache.answers import AnswerCache
from aiss.cache.store import KeyValueStore, SqliteStore
from aiss.config import AissConfig, clamp_ttl
from aiss.db.models import SearchDocument, SearchEvent
from aiss.db.repository import Repository
from aiss.gate.bots import is_bot
from aiss.gate.ratelimit import RateDecision, RateGovernor
from aiss.rag.llm_client import ProviderClient, ProviderOutcome
from aiss.rag.parser import normalize_payload
from aiss.rag.sanitize import is_safe_url, sanitize_answer_html
from aiss.rag.selector import ContentSelector
from aiss.summary import errors
from aiss.summary.errors import SummaryError
from aiss.summary.models import ClientInfo, SummaryResponse, SummaryResult

logger = logging.getLogger(__name__)

MIN_QUERY_CHARS = 2
MAX_QUERY_CHARS = 200


class EventSink(Protocol):
    def add_search_event(self, event: SearchEvent) -> int: ...


class DocumentSelector(Protocol):
    def select(
        self, query: str, exclude_ids: list[int] | None = None
    ) -> list[SearchDocument]: ...


class SummaryProvider(Protocol):
    model: str

    def is_configured(self) -> bool: ...

    def generate_summary(
        self, query: str, documents: list[SearchDocument]
    ) -> ProviderOutcome: ...


def clean_query(query: str) -> str:
    """Collapse internal whitespace and trim."""
    return re.sub(r"\s+", " ", query or "").strip()


def validate_query(query: str) -> SummaryError | None:
    """Return an invalid_query error unless *query* is 2–200 characters."""
    length = len(clean_query(query))
    if length == 0:
        return errors.invalid_query("Please enter a search query.")
    if length < MIN_QUERY_CHARS:
        return errors.invalid_query(
            f"Search queries must be at least {MIN_QUERY_CHARS} characters long."
        )
    if length > MAX_QUERY_CHARS:
        return errors.invalid_query(
            f"Search queries must be at most {MAX_QUERY_CHARS} characters long."
        )
    return None


def _preview(query: str) -> str:
    return query[:40] + ("…" if len(query) > 40 else "")


@dataclass
class _Progress:
    """What the current request has done so far."""

    results_count: int = 0
    cache_hit: bool | None = None
    recorded: bool = False


class SummaryService:
    """Decides between cached answers and provider calls, under the gates."""

    def __init__(
        self,
        cache: AnswerCache,
        governor: RateGovernor,
        selector: DocumentSelector,
        provider: SummaryProvider,
        events: EventSink,
        max_documents: int = 6,
        cache_ttl: int = 3_600,
        min_ttl: int = 60,
        max_ttl: int = 86_400,
        enabled: bool = True,
    ) -> None:
        self.cache = cache
        self.governor = governor
        self.selector = selector
        self.provider = provider
        self.events = events
        self.max_documents = max_documents
        self.cache_ttl = clamp_ttl(cache_ttl, min_ttl, max_ttl)
        self.enabled = enabled

    @property
    def configured(self) -> bool:
        return self.enabled and self.provider.is_configured()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def summarize(self, query: str, client: ClientInfo) -> SummaryResponse:
        """Produce the summary response for one search request."""
        progress = _Progress()
        query = clean_query(query)
        try:
            return self._summarize(query, client, progress)
        except Exception:
            logger.exception("Unexpected failure summarizing %r", _preview(query))
            error = errors.provider_error("unexpected error")
            if not progress.recorded:
                self._record(query, progress, error)
            return SummaryResponse(
                error=error,
                cache_hit=progress.cache_hit,
                results_count=progress.results_count,
            )

    def record_session_hit(
        self, query: str, results_count: int, client: ClientInfo
    ) -> bool:
        """Log an answer the front end served from its own session cache.

        Returns True when an event was written.
        """
        query = clean_query(query)
        if validate_query(query) is not None:
            return False
        if is_bot(client.headers):
            logger.info("Session hit from bot ignored")
            return False
        if not self.governor.allow_client(client.ip).allowed:
            return False
        self.events.add_search_event(
            SearchEvent(
                query=query,
                results_count=max(0, int(results_count)),
                ai_success=True,
                cache_hit=True,
            )
        )
        return True

    def clear_cache(self) -> int:
        """Invalidate every cached answer. Returns the new namespace version."""
        return self.cache.bump_namespace()

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _summarize(
        self, query: str, client: ClientInfo, progress: _Progress
    ) -> SummaryResponse:
        if not self.configured:
            return self._finish(query, progress, error=errors.not_configured())

        invalid = validate_query(query)
        if invalid is not None:
            return self._finish(query, progress, error=invalid)

        if is_bot(client.headers):
            logger.info("Rejected bot request for %r", _preview(query))
            return SummaryResponse(error=errors.bot_detected())

        rate = self.governor.allow_client(client.ip)
        if not rate.allowed:
            logger.info("Per-IP limit reached for %r", _preview(query))
            return SummaryResponse(error=errors.client_rate_limited(), rate=rate)

        key = self.cache.make_key(self.provider.model, self.max_documents, query)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %r", _preview(query))
            progress.cache_hit = True
            progress.results_count = int(cached.get("results_count", 0))
            result = self._assemble(normalize_payload(cached))
            return self._finish(query, progress, result=result, rate=rate)

        logger.debug("Cache miss for %r", _preview(query))
        progress.cache_hit = False
        documents = self.selector.select(query)
        progress.results_count = len(documents)

        if not self.governor.allow_provider_call().allowed:
            logger.warning("Global provider budget exhausted")
            return self._finish(
                query, progress, error=errors.provider_budget_exhausted(), rate=rate
            )

        outcome = self.provider.generate_summary(query, documents)
        if not outcome.ok:
            return self._finish(query, progress, error=outcome.error, rate=rate)

        result = self._assemble(outcome.result)
        entry = result.to_dict()
        entry["results_count"] = progress.results_count
        try:
            self.cache.set(key, entry, self.cache_ttl)
        except sqlite3.Error:
            logger.exception("Could not cache answer for %r", _preview(query))
        return self._finish(query, progress, result=result, rate=rate)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _assemble(self, result: SummaryResult) -> SummaryResult:
        """Sanitize the answer HTML and drop sources with unsafe URLs."""
        answer_html = sanitize_answer_html(result.answer_html)
        sources = tuple(s for s in result.sources if is_safe_url(s.url))
        if not answer_html:
            return normalize_payload({"results": [s.to_dict() for s in sources]})
        return SummaryResult(answer_html=answer_html, sources=sources)

    def _finish(
        self,
        query: str,
        progress: _Progress,
        result: SummaryResult | None = None,
        error: SummaryError | None = None,
        rate: RateDecision | None = None,
    ) -> SummaryResponse:
        self._record(query, progress, error)
        return SummaryResponse(
            result=result,
            error=error,
            cache_hit=progress.cache_hit,
            results_count=progress.results_count,
            rate=rate,
        )

    def _record(
        self, query: str, progress: _Progress, error: SummaryError | None
    ) -> None:
        event = SearchEvent(
            query=query[:MAX_QUERY_CHARS],
            results_count=progress.results_count,
            ai_success=error is None,
            ai_error=error.message if error else "",
            cache_hit=progress.cache_hit,
        )
        progress.recorded = True
        try:
            self.events.add_search_event(event)
        except sqlite3.Error:
            logger.exception("Could not write search event")


# ------------------------------------------------------------------
# Wiring
# ------------------------------------------------------------------


def build_service(
    cfg: AissConfig,
    conn: sqlite3.Connection,
    store: KeyValueStore | None = None,
    provider: SummaryProvider | None = None,
) -> SummaryService:
    """Wire a SummaryService over one shared, schema-initialised connection."""
    lock = threading.RLock()
    repo = Repository(conn, lock=lock)
    kv = store if store is not None else SqliteStore(conn, lock=lock)
    if provider is None:
        provider = ProviderClient(
            model=cfg.provider.model,
            temperature=cfg.provider.temperature,
            max_tokens=cfg.provider.max_tokens,
            timeout=cfg.provider.timeout,
            max_retries=cfg.provider.max_retries,
            api_base=cfg.provider.api_base,
            site_name=cfg.site.name,
            site_description=cfg.site.description,
        )
    return SummaryService(
        cache=AnswerCache(kv),
        governor=RateGovernor(
            kv,
            global_per_minute=cfg.rate_limit.global_per_minute,
            per_ip_per_minute=cfg.rate_limit.per_ip_per_minute,
        ),
        selector=ContentSelector(
            repo,
            max_documents=cfg.search.max_documents,
            excerpt_chars=cfg.search.excerpt_chars,
            body_chars=cfg.search.body_chars,
        ),
        provider=provider,
        events=repo,
        max_documents=cfg.search.max_documents,
        cache_ttl=cfg.cache.ttl,
        min_ttl=cfg.cache.min_ttl,
        max_ttl=cfg.cache.max_ttl,
        enabled=cfg.site.enabled,
    )
