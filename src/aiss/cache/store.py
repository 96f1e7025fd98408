"""Key/value stores with per-key TTL and atomic increment.

Values are JSON-serialisable Python objects. Expiry is lazy: an expired key
behaves as absent on read and is replaced on the next write. There is no
background sweep thread; SqliteStore deletes expired rows opportunistically
every ``_SWEEP_EVERY`` writes so abandoned rate-window keys do not pile up.

Two implementations share one contract (KeyValueStore):
  - MemoryStore   in-process dict, for a single worker process and tests
  - SqliteStore   kv_store table, shared by every process using the database
"""

from __future__ import annotations

import json
import sqlite3
import threading
import time
from typing import Any, Callable, Protocol

Clock = Callable[[], float]

_SWEEP_EVERY = 100


class KeyValueStore(Protocol):
    """TTL-capable key/value store used for answers, counters and the namespace."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: int | None = None) -> None: ...

    def add(self, key: str, value: Any, ttl: int | None = None) -> bool: ...

    def incr(self, key: str, amount: int = 1, ttl: int | None = None) -> int: ...

    def delete(self, key: str) -> None: ...


def _expiry(now: float, ttl: int | None) -> float | None:
    return None if ttl is None else now + ttl


def _is_expired(expires_at: float | None, now: float) -> bool:
    return expires_at is not None and expires_at <= now


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class MemoryStore:
    """Thread-safe in-process store.

    Values are stored JSON-encoded so callers never share mutable objects
    with the store, matching what a persistent backend returns.
    """

    def __init__(self, clock: Clock = time.time) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._live_entry(key)
        return None if entry is None else json.loads(entry[0])

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        encoded = json.dumps(value)
        with self._lock:
            self._data[key] = (encoded, _expiry(self._clock(), ttl))

    def add(self, key: str, value: Any, ttl: int | None = None) -> bool:
        encoded = json.dumps(value)
        with self._lock:
            if self._live_entry(key) is not None:
                return False
            self._data[key] = (encoded, _expiry(self._clock(), ttl))
            return True

    def incr(self, key: str, amount: int = 1, ttl: int | None = None) -> int:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                new_value = amount
                expires_at = _expiry(self._clock(), ttl)
            else:
                new_value = int(json.loads(entry[0])) + amount
                expires_at = entry[1]
            self._data[key] = (json.dumps(new_value), expires_at)
            return new_value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            now = self._clock()
            return sum(1 for _, exp in self._data.values() if not _is_expired(exp, now))

    def _live_entry(self, key: str) -> tuple[str, float | None] | None:
        """Return the entry for *key*, dropping it if expired. Caller holds the lock."""
        entry = self._data.get(key)
        if entry is None:
            return None
        if _is_expired(entry[1], self._clock()):
            del self._data[key]
            return None
        return entry


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------


class SqliteStore:
    """Store backed by the kv_store table.

    Read-modify-write operations (add, incr) run inside ``BEGIN IMMEDIATE``
    so they are atomic across processes sharing the database file; the
    in-process *lock* serialises threads sharing one connection.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        lock: threading.RLock | None = None,
        clock: Clock = time.time,
    ) -> None:
        self._conn = conn
        self._lock = lock or threading.RLock()
        self._clock = clock
        self._writes = 0

    def get(self, key: str) -> Any | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT value, expires_at FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        if row is None or _is_expired(row["expires_at"], self._clock()):
            return None
        return json.loads(row["value"])

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        encoded = json.dumps(value)
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value, expires_at) VALUES (?, ?, ?)",
                (key, encoded, _expiry(self._clock(), ttl)),
            )
            self._conn.commit()
            self._after_write()

    def add(self, key: str, value: Any, ttl: int | None = None) -> bool:
        encoded = json.dumps(value)
        with self._lock, self._immediate():
            row = self._conn.execute(
                "SELECT expires_at FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
            now = self._clock()
            if row is not None and not _is_expired(row["expires_at"], now):
                return False
            self._conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value, expires_at) VALUES (?, ?, ?)",
                (key, encoded, _expiry(now, ttl)),
            )
            return True

    def incr(self, key: str, amount: int = 1, ttl: int | None = None) -> int:
        with self._lock:
            with self._immediate():
                row = self._conn.execute(
                    "SELECT value, expires_at FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
                now = self._clock()
                if row is None or _is_expired(row["expires_at"], now):
                    new_value = amount
                    expires_at = _expiry(now, ttl)
                else:
                    new_value = int(json.loads(row["value"])) + amount
                    expires_at = row["expires_at"]
                self._conn.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value, expires_at) VALUES (?, ?, ?)",
                    (key, json.dumps(new_value), expires_at),
                )
            self._after_write()
        return new_value

    def delete(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            self._conn.commit()

    def purge_expired(self) -> int:
        """Delete every expired row. Returns the number of rows removed."""
        with self._lock:
            cur = self._conn.execute(
                "DELETE FROM kv_store WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (self._clock(),),
            )
            self._conn.commit()
        return cur.rowcount

    def _after_write(self) -> None:
        self._writes += 1
        if self._writes % _SWEEP_EVERY == 0:
            self.purge_expired()

    def _immediate(self) -> _Transaction:
        return _Transaction(self._conn)


class _Transaction:
    """``BEGIN IMMEDIATE`` … COMMIT, rolled back if the block raises."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def __enter__(self) -> sqlite3.Connection:
        if self._conn.in_transaction:
            self._conn.commit()
        self._conn.execute("BEGIN IMMEDIATE")
        return self._conn

    def __exit__(self, exc_type: object, *args: object) -> None:
        if exc_type is None:
            self._conn.commit()
        else:
            self._conn.rollback()
