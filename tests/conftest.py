"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from aiss.db.connection import Database
from aiss.db.schema import initialize


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = 1_699_999_980.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".aiss.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def clock():
    """Fake clock starting at the beginning of a rate window."""
    return FakeClock()
