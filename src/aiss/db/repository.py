"""Repository pattern for the content index and the search log.

Single interface for: posts, FTS5 post search, search log events and
search log statistics. The key/value cache table is owned by
aiss.cache.store.SqliteStore.
"""

from __future__ import annotations

import re
import sqlite3
import threading

from aiss.db.models import Post, SearchEvent

_POST_COLUMNS = "p.id, p.title, p.url, p.excerpt, p.content, p.post_type, p.published_at"


class Repository:
    """Data access layer for posts and search events.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use. When the connection is shared between
    request threads, pass the same *lock* to every object using it.
    """

    def __init__(
        self, conn: sqlite3.Connection, lock: threading.RLock | None = None
    ) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see aiss.db.schema.initialize).
            lock: Lock serialising access to *conn*.
        """
        self._conn = conn
        self._lock = lock or threading.RLock()

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    def upsert_post(self, post: Post, plain_text: str | None = None) -> None:
        """Insert or replace a post and keep the FTS5 index in sync.

        Args:
            post: Post to persist (content may be HTML).
            plain_text: Text to index for full-text search. Defaults to
                ``post.content``.
        """
        text = post.content if plain_text is None else plain_text
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO posts (id, title, url, excerpt, content, post_type, published_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    url = excluded.url,
                    excerpt = excluded.excerpt,
                    content = excluded.content,
                    post_type = excluded.post_type,
                    published_at = excluded.published_at,
                    indexed_at = datetime('now')
                """,
                (
                    post.id,
                    post.title,
                    post.url,
                    post.excerpt,
                    post.content,
                    post.post_type,
                    post.published_at,
                ),
            )
            self._conn.execute("DELETE FROM posts_fts WHERE rowid = ?", (post.id,))
            self._conn.execute(
                "INSERT INTO posts_fts(rowid, title, content) VALUES (?, ?, ?)",
                (post.id, post.title, text),
            )
            self._conn.commit()

    def get_post(self, post_id: int) -> Post | None:
        """Return a post by ID, or None if not found."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_POST_COLUMNS} FROM posts p WHERE p.id = ?", (post_id,)
            ).fetchone()
        return _row_to_post(row) if row else None

    def count_posts(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM posts").fetchone()[0]

    def delete_post(self, post_id: int) -> None:
        """Delete a post and its FTS entry (cascade not available on FTS)."""
        with self._lock:
            self._conn.execute("DELETE FROM posts_fts WHERE rowid = ?", (post_id,))
            self._conn.execute("DELETE FROM posts WHERE id = ?", (post_id,))
            self._conn.commit()

    def search_posts(
        self,
        query: str,
        limit: int = 10,
        exclude_ids: list[int] | None = None,
    ) -> list[tuple[Post, float]]:
        """BM25 full-text search over title + content. Returns (post, score) best-first.

        Query terms are OR-ed so that a partial match still yields candidates;
        bm25() ranks documents matching more terms higher. bm25() returns
        negative values; lower (more negative) = better match.
        """
        fts_query = _to_fts_query(query)
        if not fts_query or limit <= 0:
            return []

        sql = (
            f"SELECT {_POST_COLUMNS}, bm25(posts_fts) AS score "
            "FROM posts_fts JOIN posts p ON p.id = posts_fts.rowid "
            "WHERE posts_fts MATCH ?"
        )
        params: list[object] = [fts_query]
        if exclude_ids:
            placeholders = ",".join("?" * len(exclude_ids))
            sql += f" AND p.id NOT IN ({placeholders})"
            params.extend(exclude_ids)
        sql += " ORDER BY score LIMIT ?"
        params.append(limit)

        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [(_row_to_post(r), r["score"]) for r in rows]

    # ------------------------------------------------------------------
    # Search log (append-only event sink)
    # ------------------------------------------------------------------

    def add_search_event(self, event: SearchEvent) -> int:
        """Append one search event. Returns the new row id."""
        cache_hit = None if event.cache_hit is None else int(event.cache_hit)
        with self._lock:
            cur = self._conn.execute(
                """
                INSERT INTO search_logs
                    (search_query, results_count, ai_success, ai_error, cache_hit)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    event.query,
                    event.results_count,
                    int(event.ai_success),
                    event.ai_error,
                    cache_hit,
                ),
            )
            self._conn.commit()
        return cur.lastrowid

    def list_search_events(self, limit: int | None = None) -> list[SearchEvent]:
        """Return search events, newest first."""
        sql = (
            "SELECT id, search_query, results_count, ai_success, ai_error, cache_hit, "
            "created_at FROM search_logs ORDER BY id DESC"
        )
        params: tuple[int, ...] = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [_row_to_event(r) for r in rows]

    def search_stats(self) -> dict[str, int]:
        """Aggregate counts over the whole search log.

        Returns:
            Dict with keys total, ai_success, ai_errors, cache_hits,
            cache_misses.
        """
        with self._lock:
            row = self._conn.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    COALESCE(SUM(ai_success), 0) AS ai_success,
                    COALESCE(SUM(CASE WHEN ai_success = 0 THEN 1 ELSE 0 END), 0) AS ai_errors,
                    COALESCE(SUM(CASE WHEN cache_hit = 1 THEN 1 ELSE 0 END), 0) AS cache_hits,
                    COALESCE(SUM(CASE WHEN cache_hit = 0 THEN 1 ELSE 0 END), 0) AS cache_misses
                FROM search_logs
                """
            ).fetchone()
        return {k: int(row[k]) for k in row.keys()}

    def top_queries(self, limit: int = 10) -> list[tuple[str, int]]:
        """Return [(query, count), ...] for the most frequent queries."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT search_query, COUNT(*) AS n FROM search_logs
                GROUP BY LOWER(search_query) ORDER BY n DESC, MAX(id) DESC LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [(r["search_query"], r["n"]) for r in rows]

    def delete_search_events(self) -> int:
        """Delete the whole search log. Returns the number of rows removed."""
        with self._lock:
            cur = self._conn.execute("DELETE FROM search_logs")
            self._conn.commit()
        return cur.rowcount


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _to_fts_query(query: str) -> str:
    """Turn free text into an FTS5 OR-query of quoted terms.

    FTS5 MATCH rejects punctuation and treats AND/OR/NOT as operators, so
    every term is reduced to word characters and quoted.
    """
    terms = re.findall(r"\w+", query.lower())
    return " OR ".join(f'"{t}"' for t in terms)


def _row_to_post(row: sqlite3.Row) -> Post:
    return Post(
        id=row["id"],
        title=row["title"],
        url=row["url"],
        excerpt=row["excerpt"],
        content=row["content"],
        post_type=row["post_type"],
        published_at=row["published_at"],
    )


def _row_to_event(row: sqlite3.Row) -> SearchEvent:
    return SearchEvent(
        id=row["id"],
        query=row["search_query"],
        results_count=row["results_count"],
        ai_success=bool(row["ai_success"]),
        ai_error=row["ai_error"],
        cache_hit=None if row["cache_hit"] is None else bool(row["cache_hit"]),
        created_at=row["created_at"],
    )
