"""AI Search Summary database layer."""

from aiss.db.connection import Database
from aiss.db.migrations import MIGRATIONS, run_migrations
from aiss.db.schema import initialize

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
]
