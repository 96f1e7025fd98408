"""Answer cache and the key/value stores behind it."""

from aiss.cache.answers import AnswerCache, normalize_query
from aiss.cache.store import KeyValueStore, MemoryStore, SqliteStore

__all__ = [
    "AnswerCache",
    "KeyValueStore",
    "MemoryStore",
    "SqliteStore",
    "normalize_query",
]
