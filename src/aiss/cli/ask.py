"""aiss ask — run one summary request through the full pipeline.

Goes through the same gates as the HTTP endpoint (bot filter, per-IP and
global limits, cache) and writes the same search event, so the result is
what a visitor with the given IP and User-Agent would see.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from aiss.cli.context import load_cli_config, open_db
from aiss.cli.errors import err_disabled, err_empty_index, err_no_api_key
from aiss.db.repository import Repository
from aiss.rag.selector import html_to_text
from aiss.summary.models import ClientInfo, SummaryResponse
from aiss.summary.service import build_service

console = Console()

_CLI_USER_AGENT = "Mozilla/5.0 (aiss-cli)"


def ask_cmd(
    query: Annotated[str, typer.Argument(help="Search query to summarize.")],
    ip: Annotated[
        str,
        typer.Option("--ip", help="Client IP to account the request to."),
    ] = "127.0.0.1",
    user_agent: Annotated[
        str,
        typer.Option("--user-agent", help="User-Agent header to send through the bot filter."),
    ] = _CLI_USER_AGENT,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the database."),
    ] = None,
) -> None:
    """Summarize QUERY from the indexed posts."""
    cfg = load_cli_config(db)
    conn = open_db(cfg.storage.db_path)
    try:
        service = build_service(cfg, conn)
        if not cfg.site.enabled:
            console.print(err_disabled())
            raise typer.Exit(1)
        if not service.provider.is_configured():
            console.print(err_no_api_key(cfg.provider.model))
            raise typer.Exit(1)
        if Repository(conn).count_posts() == 0:
            console.print(err_empty_index())

        client = ClientInfo(ip=ip, headers={"User-Agent": user_agent})
        with console.status("Generating summary…"):
            response = service.summarize(query, client)
    finally:
        conn.close()

    _render(response)
    if not response.ok:
        raise typer.Exit(1)


def _render(response: SummaryResponse) -> None:
    if response.error is not None:
        console.print(
            f"[red]Error ({response.error.code}, HTTP {response.http_status}):[/] "
            f"{response.error.message}"
        )
    if response.result is not None:
        console.print(
            Panel(html_to_text(response.result.answer_html), title="[bold]Answer[/]", expand=False)
        )
        if response.result.sources:
            table = Table(show_header=True, box=None, padding=(0, 1))
            table.add_column("#", style="dim", width=3)
            table.add_column("Title", style="bold")
            table.add_column("URL", style="cyan")
            for i, source in enumerate(response.result.sources, start=1):
                table.add_row(str(i), source.title, source.url)
            console.print(table)

    cache = {True: "hit", False: "miss", None: "-"}[response.cache_hit]
    line = f"[dim]cache: {cache}  |  results: {response.results_count}"
    if response.rate is not None and response.rate.limit > 0:
        line += f"  |  per-IP remaining: {response.rate.remaining}/{response.rate.limit}"
    console.print(line + "[/]")
