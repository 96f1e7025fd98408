"""aiss status command.

Shows the configuration in effect, the content index size and search log
statistics: totals, AI success rate, cache-hit rate and the top queries.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from aiss.cli.context import load_cli_config, open_db
from aiss.config import AissConfig
from aiss.db.repository import Repository
from aiss.rag.llm_client import validate_api_key

console = Console()


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the database."),
    ] = None,
    top: Annotated[
        int,
        typer.Option("--top", help="Number of top queries to list."),
    ] = 10,
) -> None:
    """Show configuration, index size and search statistics."""
    cfg = load_cli_config(db)
    _show_config_panel(cfg)

    conn = open_db(cfg.storage.db_path)
    try:
        repo = Repository(conn)
        posts = repo.count_posts()
        stats = repo.search_stats()
        queries = repo.top_queries(top)
    finally:
        conn.close()

    _show_search_panel(posts, stats)
    _show_top_queries(queries)


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_config_panel(cfg: AissConfig) -> None:
    try:
        validate_api_key(cfg.provider.model)
        key_status = "[green]✓ API key set[/]"
    except EnvironmentError:
        key_status = "[yellow]✗ API key missing[/]"

    enabled = "[green]enabled[/]" if cfg.site.enabled else "[yellow]disabled[/]"
    global_limit = cfg.rate_limit.global_per_minute or "unlimited"
    lines = [
        f"Site:       [bold]{cfg.site.name or '(unnamed)'}[/]  ({enabled})",
        f"Model:      {cfg.provider.model}  {key_status}",
        f"Database:   {cfg.storage.db_path}",
        f"Limits:     {global_limit} provider calls/min, "
        f"{cfg.rate_limit.per_ip_per_minute} requests/min per IP",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Configuration[/]", expand=False))


def _pct(part: int, whole: int) -> str:
    return f"{part / whole * 100:.1f}%" if whole else "-"


def _show_search_panel(posts: int, stats: dict[str, int]) -> None:
    total = stats["total"]
    lookups = stats["cache_hits"] + stats["cache_misses"]
    lines = [
        f"Indexed posts:  [bold]{posts:,}[/]",
        f"Searches:       [bold]{total:,}[/]",
        f"AI success:     {stats['ai_success']:,} ({_pct(stats['ai_success'], total)})",
        f"AI errors:      {stats['ai_errors']:,}",
        f"Cache hits:     {stats['cache_hits']:,} ({_pct(stats['cache_hits'], lookups)})",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Search Log[/]", expand=False))


def _show_top_queries(queries: list[tuple[str, int]]) -> None:
    if not queries:
        console.print("[dim]No searches logged yet.[/]")
        return
    table = Table(title="Top queries", show_header=True)
    table.add_column("Query")
    table.add_column("Count", justify="right")
    for query, count in queries:
        table.add_row(query, str(count))
    console.print(table)
