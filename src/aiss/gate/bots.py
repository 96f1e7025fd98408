"""Heuristic automated-traffic filter.

A request without a User-Agent is treated as a bot (fail closed). Otherwise
the User-Agent is matched case-insensitively against a fixed list of
automation signatures. False positives are accepted; this keeps crawlers
from spending the provider budget and is not a security boundary.
"""

from __future__ import annotations

from collections.abc import Mapping

BOT_SIGNATURES: tuple[str, ...] = (
    "bot",
    "crawl",
    "spider",
    "slurp",
    "scrape",
    "curl",
    "wget",
    "python-requests",
    "python-urllib",
    "python-httpx",
    "aiohttp",
    "httpclient",
    "go-http-client",
    "java/",
    "okhttp",
    "libwww",
    "node-fetch",
    "axios",
    "scrapy",
    "headless",
    "phantomjs",
    "selenium",
    "puppeteer",
    "playwright",
    "facebookexternalhit",
    "semrush",
    "ahrefs",
    "petalsearch",
    "preview",
)


def header_value(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup."""
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def is_bot(headers: Mapping[str, str]) -> bool:
    """Return True if the request headers look like automated traffic."""
    user_agent = (header_value(headers, "user-agent") or "").strip().lower()
    if not user_agent:
        return True
    return any(sig in user_agent for sig in BOT_SIGNATURES)
