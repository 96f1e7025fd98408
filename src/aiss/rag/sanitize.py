"""Allow-list HTML sanitizer for AI answers.

Only p, br, strong, em, ul, ol, li, h3, h4 and a[href,title,target,rel]
survive. Executable or embedding elements are removed with their content;
any other tag is unwrapped so its text is kept. Links must point to http(s),
a relative path or an in-page anchor, and links opening a new tab get
rel="noopener noreferrer".
"""

from __future__ import annotations

from urllib.parse import urlparse

from bs4 import BeautifulSoup, Comment, Tag

ALLOWED_TAGS: frozenset[str] = frozenset(
    ["p", "br", "strong", "em", "ul", "ol", "li", "h3", "h4", "a"]
)
ALLOWED_LINK_ATTRS: frozenset[str] = frozenset(["href", "title", "target", "rel"])

_DROP_WITH_CONTENT: frozenset[str] = frozenset(
    [
        "script",
        "style",
        "iframe",
        "object",
        "embed",
        "noscript",
        "template",
        "svg",
        "math",
        "form",
        "input",
        "button",
        "textarea",
        "select",
        "head",
        "title",
        "meta",
        "link",
    ]
)
_SAFE_SCHEMES = {"http", "https", ""}


def sanitize_answer_html(html: str) -> str:
    """Return *html* reduced to the answer allow-list."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")

    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    for tag in soup.find_all(True):
        if tag.decomposed:
            continue
        name = tag.name.lower()
        if name in _DROP_WITH_CONTENT:
            tag.decompose()
        elif name not in ALLOWED_TAGS:
            tag.unwrap()
        elif name == "a":
            _clean_link(tag)
        else:
            tag.attrs = {}

    return str(soup).strip()


def is_safe_url(url: str) -> bool:
    """True for http(s) URLs, relative paths and anchors."""
    candidate = url.strip()
    if not candidate or candidate.startswith("//"):
        return False
    try:
        scheme = urlparse(candidate).scheme.lower()
    except ValueError:
        return False
    return scheme in _SAFE_SCHEMES


def _clean_link(tag: Tag) -> None:
    attrs = {k: v for k, v in tag.attrs.items() if k.lower() in ALLOWED_LINK_ATTRS}
    href = attrs.get("href")
    if not isinstance(href, str) or not is_safe_url(href):
        attrs.pop("href", None)
    if attrs.get("target") not in (None, "_blank", "_self"):
        attrs.pop("target")
    if attrs.get("target") == "_blank":
        attrs["rel"] = "noopener noreferrer"
    tag.attrs = attrs
