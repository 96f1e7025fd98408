"""Content selection: turn full-text search hits into SearchDocuments.

Posts are stored with their raw HTML. At selection time the HTML is reduced
to plain text (html2text), the body is truncated to ``body_chars`` at a word
boundary and an excerpt is taken from the stored excerpt or, failing that,
from the start of the body.
"""

from __future__ import annotations

import html2text
from bs4 import BeautifulSoup

from aiss.db.models import Post, SearchDocument
from aiss.db.repository import Repository

# Shared html2text converter
_h2t = html2text.HTML2Text()
_h2t.ignore_links = True
_h2t.ignore_images = True
_h2t.ignore_emphasis = True
_h2t.body_width = 0  # no line wrapping


def html_to_text(html: str) -> str:
    """Strip HTML markup and return plain text via html2text."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(["script", "style", "nav", "footer", "head", "iframe"]):
        tag.decompose()
    return _h2t.handle(str(soup)).strip()


def truncate(text: str, limit: int) -> str:
    """Cut *text* to at most *limit* characters, walking back to a space."""
    text = " ".join(text.split())
    if limit <= 0 or len(text) <= limit:
        return text
    cut = text[:limit]
    last_space = cut.rfind(" ")
    if last_space > limit // 2:
        cut = cut[:last_space]
    return cut.rstrip() + "…"


class ContentSelector:
    """Picks the posts used as sources for one query."""

    def __init__(
        self,
        repo: Repository,
        max_documents: int = 6,
        excerpt_chars: int = 300,
        body_chars: int = 2000,
    ) -> None:
        self.repo = repo
        self.max_documents = max_documents
        self.excerpt_chars = excerpt_chars
        self.body_chars = body_chars

    def select(
        self, query: str, exclude_ids: list[int] | None = None
    ) -> list[SearchDocument]:
        """Return up to ``max_documents`` documents, best match first."""
        hits = self.repo.search_posts(query, limit=self.max_documents, exclude_ids=exclude_ids)
        return [self.to_document(post) for post, _score in hits]

    def to_document(self, post: Post) -> SearchDocument:
        body = html_to_text(post.content)
        excerpt_source = html_to_text(post.excerpt) if post.excerpt else body
        return SearchDocument(
            id=post.id,
            title=BeautifulSoup(post.title, "html.parser").get_text().strip() or post.title,
            url=post.url,
            excerpt=truncate(excerpt_source, self.excerpt_chars),
            body=truncate(body, self.body_chars),
            source_type=post.post_type,
            published_date=post.published_at[:10],
        )
