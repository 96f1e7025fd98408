"""aiss cache — administrative cache commands.

  clear   bump the namespace: every cached answer becomes unreachable at once
  purge   delete the indexed answer entries outright (optionally the search log)
  status  namespace version, indexed entries and provider budget
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel

from aiss.cache.answers import AnswerCache
from aiss.cache.store import SqliteStore
from aiss.cli.context import load_cli_config, open_db
from aiss.db.repository import Repository
from aiss.gate.ratelimit import RateGovernor

console = Console()

cache_app = typer.Typer(help="Inspect and invalidate the answer cache.", no_args_is_help=True)

_DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the database."),
]


@cache_app.command("clear")
def clear_cmd(db: _DbOption = None) -> None:
    """Invalidate every cached answer (namespace bump)."""
    cfg = load_cli_config(db)
    conn = open_db(cfg.storage.db_path)
    try:
        version = AnswerCache(SqliteStore(conn)).bump_namespace()
    finally:
        conn.close()
    console.print(f"[green]✓[/] Answer cache cleared (namespace {version}).")


@cache_app.command("purge")
def purge_cmd(
    logs: Annotated[
        bool,
        typer.Option("--logs", help="Also delete the search log."),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    db: _DbOption = None,
) -> None:
    """Delete indexed answer entries and expired cache rows."""
    cfg = load_cli_config(db)
    if logs and not yes:
        typer.confirm("Delete the whole search log as well?", abort=True)

    conn = open_db(cfg.storage.db_path)
    try:
        store = SqliteStore(conn)
        removed = AnswerCache(store).purge()
        expired = store.purge_expired()
        deleted_logs = Repository(conn).delete_search_events() if logs else 0
    finally:
        conn.close()

    console.print(f"[green]✓[/] Purged {removed} cached answer(s), {expired} expired row(s).")
    if logs:
        console.print(f"[green]✓[/] Deleted {deleted_logs} search log record(s).")


@cache_app.command("status")
def status_cmd(db: _DbOption = None) -> None:
    """Show namespace version, indexed entries and the provider budget."""
    cfg = load_cli_config(db)
    conn = open_db(cfg.storage.db_path)
    try:
        store = SqliteStore(conn)
        cache = AnswerCache(store)
        namespace = cache.namespace()
        indexed = len(cache.indexed_keys())
        governor = RateGovernor(
            store,
            global_per_minute=cfg.rate_limit.global_per_minute,
            per_ip_per_minute=cfg.rate_limit.per_ip_per_minute,
        )
        budget = governor.provider_status()
    finally:
        conn.close()

    if budget.limit > 0:
        budget_line = f"{budget.remaining}/{budget.limit} provider calls left this minute"
    else:
        budget_line = "unlimited"
    lines = [
        f"Namespace:        [bold]{namespace}[/]",
        f"Indexed entries:  [bold]{indexed}[/]",
        f"TTL:              {cfg.cache.ttl}s",
        f"Provider budget:  {budget_line}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Answer Cache[/]", expand=False))
