"""Namespaced answer cache.

Every cache key embeds the current namespace version:

  key = prefix + sha256(namespace | model | max_documents | normalized_query)

Bumping the namespace makes every previously written key unreachable in
O(1) without enumerating or deleting anything; old entries simply expire
through their TTL. A key index of recent writes is kept as well so that an
explicit purge can delete entries outright, but invalidation never depends
on it: an empty or stale index is harmless.
"""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Any

from aiss.cache.store import KeyValueStore

logger = logging.getLogger(__name__)

NAMESPACE_KEY = "aiss:cache_namespace"
INDEX_KEY = "aiss:cache_keys"
KEY_PREFIX = "aiss:answer:"
MAX_INDEX_SIZE = 500


def normalize_query(query: str) -> str:
    """Lower-case *query* and collapse internal whitespace (cache-key form)."""
    return re.sub(r"\s+", " ", query).strip().lower()


class AnswerCache:
    """Answer cache over any KeyValueStore."""

    def __init__(self, store: KeyValueStore, max_index_size: int = MAX_INDEX_SIZE) -> None:
        self._store = store
        self._max_index_size = max_index_size

    # ------------------------------------------------------------------
    # Namespace
    # ------------------------------------------------------------------

    def namespace(self) -> int:
        """Return the current namespace version, initialising it to 1 on first access."""
        value = self._store.get(NAMESPACE_KEY)
        if value is None:
            self._store.add(NAMESPACE_KEY, 1)
            value = self._store.get(NAMESPACE_KEY)
        return int(value) if value is not None else 1

    def bump_namespace(self) -> int:
        """Invalidate every cached answer. Returns the new namespace version."""
        self.namespace()
        version = self._store.incr(NAMESPACE_KEY)
        logger.info("Answer cache namespace bumped to %d", version)
        return version

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def make_key(self, model: str, max_documents: int, query: str) -> str:
        """Derive the cache key for (current namespace, model, max_documents, query)."""
        raw = "|".join(
            [str(self.namespace()), model, str(max_documents), normalize_query(query)]
        )
        return KEY_PREFIX + hashlib.sha256(raw.encode("utf-8")).hexdigest()

    def get(self, key: str) -> dict[str, Any] | None:
        value = self._store.get(key)
        return value if isinstance(value, dict) else None

    def set(self, key: str, value: dict[str, Any], ttl: int) -> None:
        self._store.set(key, value, ttl)
        self._track(key)

    def purge(self) -> int:
        """Delete every indexed entry and clear the index. Returns the number of keys deleted."""
        keys = self.indexed_keys()
        for key in keys:
            self._store.delete(key)
        self._store.delete(INDEX_KEY)
        logger.info("Purged %d indexed answer cache entries", len(keys))
        return len(keys)

    def indexed_keys(self) -> list[str]:
        value = self._store.get(INDEX_KEY)
        return [k for k in value if isinstance(k, str)] if isinstance(value, list) else []

    def _track(self, key: str) -> None:
        """Record *key* in the capped index (best effort, last writer wins)."""
        keys = [k for k in self.indexed_keys() if k != key]
        keys.append(key)
        self._store.set(INDEX_KEY, keys[-self._max_index_size:])
