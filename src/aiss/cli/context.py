"""Shared CLI plumbing: config loading and database access."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from aiss.cli.errors import err_config, err_no_db
from aiss.config import AissConfig, ConfigError, load_config
from aiss.db.connection import Database
from aiss.db.schema import initialize
from aiss.logging_config import configure_logging

console = Console()


def load_cli_config(db: Path | None = None) -> AissConfig:
    """Load config from the working directory, exiting with a message on error.

    A ``--db`` option, when given, overrides ``storage.db_path``.
    """
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    if db is not None:
        cfg.storage.db_path = str(db)
    configure_logging(cfg.logging.level)
    return cfg


def open_db(db_path: str, create: bool = False) -> sqlite3.Connection:
    """Open and migrate the database. Exits when it is missing unless *create*."""
    if not create and db_path != ":memory:" and not Path(db_path).exists():
        console.print(err_no_db(db_path))
        raise typer.Exit(1)
    conn = Database(db_path).connect()
    initialize(conn)
    return conn
