"""aiss index — load a JSON export of published posts into the content index.

Accepted input: a JSON list of post objects, or an object with a "posts"
list. Each post needs id, title and url (``link`` is accepted for url).
WordPress REST objects work as-is: ``{"rendered": ...}`` fields are
unwrapped, ``date`` and ``type`` are read, and posts whose ``status`` is
anything other than "publish" are skipped. Existing posts are replaced by id.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from aiss.cli.context import load_cli_config, open_db
from aiss.cli.errors import err_index_file
from aiss.db.models import Post
from aiss.db.repository import Repository
from aiss.rag.selector import html_to_text

console = Console()


def index_cmd(
    file: Annotated[
        Path,
        typer.Argument(help="JSON file with the posts to index."),
    ],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the database (created if missing)."),
    ] = None,
) -> None:
    """Index published posts from a JSON export."""
    cfg = load_cli_config(db)

    try:
        items = load_posts(file)
    except (OSError, ValueError) as exc:
        console.print(err_index_file(str(file), str(exc)))
        raise typer.Exit(1) from exc

    conn = open_db(cfg.storage.db_path, create=True)
    repo = Repository(conn)
    indexed = skipped = 0
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Indexing posts", total=len(items))
            for item in items:
                post = post_from_dict(item)
                if post is None:
                    skipped += 1
                else:
                    repo.upsert_post(post, plain_text=html_to_text(post.content))
                    indexed += 1
                progress.advance(task)
        total = repo.count_posts()
    finally:
        conn.close()

    console.print(f"[green]✓[/] Indexed {indexed} post(s) into {cfg.storage.db_path}")
    if skipped:
        console.print(f"[yellow]⚠[/] Skipped {skipped} unpublished or incomplete item(s)")
    console.print(f"[dim]{total} post(s) in the index.[/]")


def load_posts(path: Path) -> list[Any]:
    """Read the export file and return its list of post objects."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("posts")
    if not isinstance(data, list):
        raise ValueError("expected a list of posts")
    return data


def post_from_dict(item: Any) -> Post | None:
    """Build a Post from one export object. Returns None for unusable items."""
    if not isinstance(item, dict):
        return None
    status = item.get("status")
    if status is not None and status != "publish":
        return None
    try:
        post_id = int(item["id"])
    except (KeyError, TypeError, ValueError):
        return None
    url = _text(item.get("url") or item.get("link"))
    title = _text(item.get("title"))
    if not url or not title:
        return None
    return Post(
        id=post_id,
        title=title,
        url=url,
        content=_text(item.get("content")),
        excerpt=_text(item.get("excerpt")),
        post_type=_text(item.get("post_type") or item.get("type")) or "post",
        published_at=_text(item.get("published_at") or item.get("date")),
    )


def _text(value: Any) -> str:
    if isinstance(value, dict):
        value = value.get("rendered", "")
    return str(value).strip() if value is not None else ""
