"""aiss init — create the database and a starter aiss.yaml.

Creates:
  .aiss.db    — content index, answer cache and search log (schema applied)
  aiss.yaml   — project config (left untouched if it already exists)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from aiss.config import write_project_config
from aiss.db.connection import Database
from aiss.db.schema import initialize

console = Console()

_DEFAULT_PROJECT_DIR = Path(".")
_DB_NAME = ".aiss.db"


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
    site_name: Annotated[
        str,
        typer.Option("--site-name", help="Site name used in the system prompt."),
    ] = "",
) -> None:
    """Initialize the database and project config."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    db_path = project_dir / _DB_NAME
    existed = db_path.exists()
    with Database(db_path) as conn:
        initialize(conn)
    if existed:
        console.print(f"  [green]✓[/] {_DB_NAME} (existing data preserved, schema up to date)")
    else:
        console.print(f"  [green]✓[/] {_DB_NAME}")

    cfg_path = project_dir / "aiss.yaml"
    cfg_existed = cfg_path.exists()
    write_project_config(project_dir, site_name=site_name)
    if cfg_existed:
        console.print("  [dim]-[/] aiss.yaml already exists, left unchanged")
    else:
        console.print("  [green]✓[/] aiss.yaml")

    console.print("\nNext steps:")
    console.print("  1. export OPENAI_API_KEY=sk-...          (provider credentials)")
    console.print("  2. aiss index posts.json                 (build the content index)")
    console.print("  3. aiss ask \"your question\"              (try a summary)")
    console.print("  4. aiss serve                            (start the HTTP API)")
