"""Tests for the aiss entry point, init and serve."""

from __future__ import annotations

from pathlib import Path

import yaml
from typer.testing import CliRunner

from aiss.cli.main import app

runner = CliRunner()


# ---------------------------------------------------------------------------
# aiss --version
# ---------------------------------------------------------------------------


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("aiss ")


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "aiss" in result.output


def test_no_args_shows_help() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "serve" in result.output


# ---------------------------------------------------------------------------
# aiss init
# ---------------------------------------------------------------------------


def test_init_creates_db_and_config(project: Path) -> None:
    result = runner.invoke(app, ["init", str(project), "--site-name", "Energy News"])
    assert result.exit_code == 0, result.output
    assert (project / ".aiss.db").exists()
    data = yaml.safe_load((project / "aiss.yaml").read_text(encoding="utf-8"))
    assert data["site"]["name"] == "Energy News"
    assert "Next steps" in result.output


def test_init_is_idempotent(project: Path) -> None:
    runner.invoke(app, ["init", str(project), "--site-name", "First"])
    result = runner.invoke(app, ["init", str(project), "--site-name", "Second"])
    assert result.exit_code == 0
    assert "already exists" in result.output
    data = yaml.safe_load((project / "aiss.yaml").read_text(encoding="utf-8"))
    assert data["site"]["name"] == "First"


def test_init_creates_missing_directory(project: Path) -> None:
    target = project / "nested" / "site"
    result = runner.invoke(app, ["init", str(target)])
    assert result.exit_code == 0
    assert (target / ".aiss.db").exists()


# ---------------------------------------------------------------------------
# aiss serve
# ---------------------------------------------------------------------------


def test_serve_runs_uvicorn_with_config(project: Path, monkeypatch) -> None:
    runner.invoke(app, ["init", str(project)])
    calls = {}

    def fake_run(app_obj, **kwargs):
        calls["app"] = app_obj
        calls.update(kwargs)

    monkeypatch.setattr("aiss.cli.main.uvicorn.run", fake_run)
    result = runner.invoke(app, ["serve", "--port", "9001"])
    assert result.exit_code == 0, result.output
    assert calls["port"] == 9001
    assert calls["host"] == "127.0.0.1"
    assert calls["log_level"] == "info"
    assert calls["app"].state.service is not None


def test_invalid_config_exits_with_message(project: Path) -> None:
    (project / "aiss.yaml").write_text("provider:\n  api_key: sk-123\n", encoding="utf-8")
    result = runner.invoke(app, ["status"])
    assert result.exit_code == 1
    assert "environment variables" in result.output
