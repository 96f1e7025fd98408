"""Rich error messages for the aiss CLI.

Every error shown to the user states what went wrong and the exact action
that fixes it.

Usage:
    from aiss.cli.errors import err_no_api_key, err_no_db
    console.print(err_no_api_key("openai"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from aiss.rag.llm_client import _PROVIDER_ENV


def err_no_api_key(model: str) -> str:
    """No API key for the provider of *model*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider) or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str = ".aiss.db") -> str:
    """No database found at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  aiss init"
    )


def err_config(message: str) -> str:
    """aiss.yaml or the global config could not be loaded."""
    return (
        f"[red]Error:[/] {message}\n"
        "  Fix the config file and run the command again.\n"
        "  API keys belong in environment variables, never in config files."
    )


def err_disabled() -> str:
    """Summaries are switched off."""
    return (
        "[red]Error:[/] AI summaries are disabled.\n"
        "  Set  site.enabled: true  in aiss.yaml, or export AISS_ENABLED=1"
    )


def err_index_file(path: str, reason: str) -> str:
    """Post export could not be read."""
    return (
        f"[red]Error:[/] Cannot index '{path}': {reason}\n"
        "  Expected a JSON list of posts (or an object with a \"posts\" list), e.g.\n"
        '    [{"id": 1, "title": "...", "url": "https://...", "content": "<p>...</p>"}]'
    )


def err_empty_index() -> str:
    """No posts indexed yet; answers will have nothing to cite."""
    return (
        "[yellow]Warning:[/] The content index is empty.\n"
        "  Run:  aiss index posts.json"
    )
