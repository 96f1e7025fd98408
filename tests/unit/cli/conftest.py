"""Fixtures for CLI tests: an isolated project directory."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

POSTS = [
    {
        "id": 1,
        "title": {"rendered": "Battery storage report"},
        "link": "https://example.com/battery",
        "content": {"rendered": "<p>Grid battery storage grew by half this year.</p>"},
        "status": "publish",
        "type": "post",
        "date": "2024-05-01T10:00:00",
    },
    {
        "id": 2,
        "title": "Solar output",
        "url": "https://example.com/solar",
        "content": "<p>Solar output and battery pairing.</p>",
    },
    {"id": 3, "title": "Draft", "url": "https://example.com/draft", "status": "draft"},
]


@pytest.fixture
def project(tmp_path: Path, monkeypatch) -> Path:
    """Empty project directory used as CWD, with no global config and no AISS_* env."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("aiss.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    for var in ("AISS_MODEL", "AISS_DB_PATH", "AISS_ENABLED", "AISS_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def posts_file(project: Path) -> Path:
    path = project / "posts.json"
    path.write_text(json.dumps(POSTS), encoding="utf-8")
    return path
