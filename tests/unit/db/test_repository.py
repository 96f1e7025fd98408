"""Tests for the Repository pattern."""

from __future__ import annotations

import pytest

from aiss.db.models import Post, SearchEvent
from aiss.db.repository import Repository, _to_fts_query


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


def _post(id=1, title="Battery degradation after two years", url=None, content="", **kw):
    return Post(
        id=id,
        title=title,
        url=url or f"https://example.com/p/{id}",
        content=content or f"<p>{title} body text</p>",
        **kw,
    )


# ------------------------------------------------------------------
# Posts
# ------------------------------------------------------------------

def test_upsert_and_get_post(repo):
    repo.upsert_post(_post(excerpt="short", post_type="news", published_at="2024-05-01"))
    result = repo.get_post(1)
    assert result is not None
    assert result.title == "Battery degradation after two years"
    assert result.excerpt == "short"
    assert result.post_type == "news"
    assert result.published_at == "2024-05-01"


def test_get_post_not_found(repo):
    assert repo.get_post(999) is None


def test_upsert_replaces_by_id(repo):
    repo.upsert_post(_post(title="Old title"))
    repo.upsert_post(_post(title="New title"))
    assert repo.count_posts() == 1
    assert repo.get_post(1).title == "New title"


def test_upsert_reindexes_fts(repo):
    repo.upsert_post(_post(title="Towing guide", content="trailer hitch"))
    repo.upsert_post(_post(title="Charging guide", content="wall connector"))
    assert repo.search_posts("trailer") == []
    assert [p.id for p, _ in repo.search_posts("connector")] == [1]


def test_upsert_uses_plain_text_for_index(repo):
    repo.upsert_post(_post(content="<div class='x'>html</div>"), plain_text="winter range")
    assert [p.id for p, _ in repo.search_posts("winter")] == [1]
    assert repo.search_posts("div") == []


def test_delete_post_removes_fts_entry(repo):
    repo.upsert_post(_post())
    repo.delete_post(1)
    assert repo.get_post(1) is None
    assert repo.search_posts("battery") == []


# ------------------------------------------------------------------
# search_posts
# ------------------------------------------------------------------

def test_search_posts_ranks_better_match_first(repo):
    repo.upsert_post(_post(1, "Battery degradation explained", content="battery battery degradation"))
    repo.upsert_post(_post(2, "Software update notes", content="minor battery mention"))
    repo.upsert_post(_post(3, "Towing capacity", content="trailer"))
    hits = repo.search_posts("battery degradation")
    assert [p.id for p, _ in hits] == [1, 2]


def test_search_posts_respects_limit(repo):
    for i in range(1, 6):
        repo.upsert_post(_post(i, f"Range test {i}"))
    assert len(repo.search_posts("range", limit=3)) == 3


def test_search_posts_exclude_ids(repo):
    repo.upsert_post(_post(1, "Range test one"))
    repo.upsert_post(_post(2, "Range test two"))
    assert [p.id for p, _ in repo.search_posts("range", exclude_ids=[1])] == [2]


def test_search_posts_punctuation_and_operators_are_safe(repo):
    repo.upsert_post(_post(1, "R1T vs R1S: which to buy?"))
    hits = repo.search_posts('"R1T" OR NOT (r1s) AND -*')
    assert [p.id for p, _ in hits] == [1]


def test_search_posts_empty_query_returns_nothing(repo):
    repo.upsert_post(_post())
    assert repo.search_posts("  ?! ") == []
    assert repo.search_posts("battery", limit=0) == []


def test_to_fts_query_quotes_terms():
    assert _to_fts_query("Battery AND range") == '"battery" OR "and" OR "range"'


# ------------------------------------------------------------------
# Search log
# ------------------------------------------------------------------

def test_add_and_list_search_events(repo):
    first = repo.add_search_event(SearchEvent("first", 3, True, cache_hit=False))
    second = repo.add_search_event(SearchEvent("second", 0, False, "boom", cache_hit=None))
    events = repo.list_search_events()
    assert [e.id for e in events] == [second, first]
    assert events[0].cache_hit is None
    assert events[0].ai_error == "boom"
    assert events[1].cache_hit is False
    assert events[1].ai_success is True
    assert events[1].created_at


def test_list_search_events_limit(repo):
    for i in range(5):
        repo.add_search_event(SearchEvent(f"q{i}", 0, True))
    assert len(repo.list_search_events(limit=2)) == 2


def test_search_stats(repo):
    repo.add_search_event(SearchEvent("a", 1, True, cache_hit=True))
    repo.add_search_event(SearchEvent("b", 1, True, cache_hit=False))
    repo.add_search_event(SearchEvent("c", 0, False, "x", cache_hit=False))
    repo.add_search_event(SearchEvent("d", 0, False, "y", cache_hit=None))
    assert repo.search_stats() == {
        "total": 4,
        "ai_success": 2,
        "ai_errors": 2,
        "cache_hits": 1,
        "cache_misses": 2,
    }


def test_search_stats_empty_log(repo):
    assert repo.search_stats()["total"] == 0


def test_top_queries_case_insensitive(repo):
    for q in ("Range", "range", "towing", "range"):
        repo.add_search_event(SearchEvent(q, 0, True))
    top = repo.top_queries(limit=1)
    assert top[0][1] == 3
    assert top[0][0].lower() == "range"


def test_delete_search_events(repo):
    repo.add_search_event(SearchEvent("a", 0, True))
    assert repo.delete_search_events() == 1
    assert repo.list_search_events() == []
