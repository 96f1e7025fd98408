"""aiss CLI entry point."""

from __future__ import annotations

import importlib.metadata
from pathlib import Path
from typing import Annotated

import typer
import uvicorn

from aiss.api.app import create_app
from aiss.cli.ask import ask_cmd
from aiss.cli.cache import cache_app
from aiss.cli.context import load_cli_config
from aiss.cli.index import index_cmd
from aiss.cli.init import init_cmd
from aiss.cli.status import status_cmd

_DIST_NAME = "ai-search-summary"


def _installed_version() -> str:
    try:
        return importlib.metadata.version(_DIST_NAME)
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"aiss {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="aiss",
    help=(
        "AI Search Summary — grounded AI answers for site search.\n\n"
        "  aiss index   Load published posts into the content index.\n"
        "  aiss serve   Run the HTTP API the search page calls."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """AI Search Summary — grounded AI answers for site search."""


app.command("init")(init_cmd)
app.command("index")(index_cmd)
app.command("ask")(ask_cmd)
app.command("status")(status_cmd)
app.add_typer(cache_app, name="cache")


@app.command("serve")
def serve_cmd(
    host: Annotated[str, typer.Option("--host", help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", help="Port to listen on.")] = 8000,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the database."),
    ] = None,
) -> None:
    """Serve the summary API with uvicorn."""
    cfg = load_cli_config(db)
    uvicorn.run(create_app(config=cfg), host=host, port=port, log_level=cfg.logging.level.lower())


@app.command("version")
def version_cmd() -> None:
    """Show the installed aiss version."""
    typer.echo(f"aiss {_installed_version()}")


if __name__ == "__main__":
    app()
