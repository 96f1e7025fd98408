"""Tests for the aiss config loader."""

from __future__ import annotations

import warnings
from pathlib import Path

import pytest
import yaml

from aiss.config import (
    AissConfig,
    ConfigError,
    clamp_ttl,
    load_config,
    write_project_config,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("AISS_MODEL", "AISS_DB_PATH", "AISS_ENABLED", "AISS_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def no_global(tmp_path: Path) -> Path:
    return tmp_path / "nonexistent" / "config.yaml"


# ---------------------------------------------------------------------------
# Defaults — no config files present
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path, no_global: Path) -> None:
    """No config files → all hardcoded defaults."""
    cfg = load_config(project_dir=tmp_path, global_config_path=no_global)

    assert cfg.provider.model == "openai/gpt-4.1-mini"
    assert cfg.provider.max_retries == 2
    assert cfg.cache.ttl == 3_600
    assert cfg.rate_limit.global_per_minute == 30
    assert cfg.rate_limit.per_ip_per_minute == 10
    assert cfg.search.max_documents == 6
    assert cfg.storage.db_path == ".aiss.db"
    assert cfg.site.enabled is True
    assert cfg.site.trust_proxy is False
    assert cfg.logging.level == "INFO"


def test_defaults_match_dataclass(tmp_path: Path, no_global: Path) -> None:
    assert load_config(project_dir=tmp_path, global_config_path=no_global) == AissConfig()


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_project_config_overrides_defaults(tmp_path: Path, no_global: Path) -> None:
    _write_yaml(tmp_path / "aiss.yaml", {"search": {"max_documents": 4}, "site": {"name": "EV Times"}})
    cfg = load_config(project_dir=tmp_path, global_config_path=no_global)
    assert cfg.search.max_documents == 4
    assert cfg.search.excerpt_chars == 300  # untouched sibling keeps default
    assert cfg.site.name == "EV Times"


def test_project_overrides_global(tmp_path: Path) -> None:
    global_path = tmp_path / "global" / "config.yaml"
    _write_yaml(global_path, {"provider": {"model": "anthropic/claude-3-5-haiku-20241022", "timeout": 10}})
    _write_yaml(tmp_path / "aiss.yaml", {"provider": {"model": "openai/gpt-4o"}})
    cfg = load_config(project_dir=tmp_path, global_config_path=global_path)
    assert cfg.provider.model == "openai/gpt-4o"
    assert cfg.provider.timeout == 10.0  # deep-merged from global


def test_env_overrides_files(tmp_path: Path, no_global: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "aiss.yaml", {"provider": {"model": "openai/gpt-4o"}})
    monkeypatch.setenv("AISS_MODEL", "openai/o3-mini")
    monkeypatch.setenv("AISS_DB_PATH", "/tmp/x.db")
    monkeypatch.setenv("AISS_ENABLED", "no")
    monkeypatch.setenv("AISS_LOG_LEVEL", "debug")
    cfg = load_config(project_dir=tmp_path, global_config_path=no_global)
    assert cfg.provider.model == "openai/o3-mini"
    assert cfg.storage.db_path == "/tmp/x.db"
    assert cfg.site.enabled is False
    assert cfg.logging.level == "DEBUG"


def test_string_booleans(tmp_path: Path, no_global: Path) -> None:
    _write_yaml(tmp_path / "aiss.yaml", {"site": {"enabled": "false", "trust_proxy": "yes"}})
    cfg = load_config(project_dir=tmp_path, global_config_path=no_global)
    assert cfg.site.enabled is False
    assert cfg.site.trust_proxy is True


def test_empty_yaml_file_is_defaults(tmp_path: Path, no_global: Path) -> None:
    (tmp_path / "aiss.yaml").write_text("", encoding="utf-8")
    assert load_config(project_dir=tmp_path, global_config_path=no_global) == AissConfig()


# ---------------------------------------------------------------------------
# Security + validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("key", ["api_key", "openai_api_key", "secret", "auth_token", "password"])
def test_api_key_in_config_rejected(tmp_path: Path, no_global: Path, key: str) -> None:
    _write_yaml(tmp_path / "aiss.yaml", {"provider": {key: "sk-123"}})
    with pytest.raises(ConfigError, match="forbidden key"):
        load_config(project_dir=tmp_path, global_config_path=no_global)


def test_api_key_in_global_config_rejected(tmp_path: Path) -> None:
    global_path = tmp_path / "g" / "config.yaml"
    _write_yaml(global_path, {"api_key": "sk-123"})
    with pytest.raises(ConfigError):
        load_config(project_dir=tmp_path, global_config_path=global_path)


def test_max_tokens_is_not_mistaken_for_a_secret(tmp_path: Path, no_global: Path) -> None:
    _write_yaml(tmp_path / "aiss.yaml", {"provider": {"max_tokens": 800}})
    assert load_config(project_dir=tmp_path, global_config_path=no_global).provider.max_tokens == 800


def test_unknown_top_level_key_warns(tmp_path: Path, no_global: Path) -> None:
    _write_yaml(tmp_path / "aiss.yaml", {"mystery": {"x": 1}})
    with pytest.warns(UserWarning, match="mystery"):
        load_config(project_dir=tmp_path, global_config_path=no_global)


def test_known_keys_do_not_warn(tmp_path: Path, no_global: Path) -> None:
    _write_yaml(tmp_path / "aiss.yaml", {"cache": {"ttl": 120}})
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        load_config(project_dir=tmp_path, global_config_path=no_global)


def test_invalid_yaml_raises_config_error(tmp_path: Path, no_global: Path) -> None:
    (tmp_path / "aiss.yaml").write_text("site: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError, match="not valid YAML"):
        load_config(project_dir=tmp_path, global_config_path=no_global)


def test_non_mapping_yaml_raises_config_error(tmp_path: Path, no_global: Path) -> None:
    (tmp_path / "aiss.yaml").write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(project_dir=tmp_path, global_config_path=no_global)


def test_non_numeric_value_raises_config_error(tmp_path: Path, no_global: Path) -> None:
    _write_yaml(tmp_path / "aiss.yaml", {"cache": {"ttl": "an hour"}})
    with pytest.raises(ConfigError, match="Invalid config value"):
        load_config(project_dir=tmp_path, global_config_path=no_global)


@pytest.mark.parametrize(
    "data",
    [
        {"search": {"max_documents": 0}},
        {"search": {"max_documents": 21}},
        {"rate_limit": {"per_ip_per_minute": -1}},
        {"cache": {"min_ttl": 600, "max_ttl": 60}},
        {"cache": {"ttl": 0, "min_ttl": 0}},
        {"cache": {"max_ttl": 10**6}},
        {"provider": {"max_retries": -1}},
        {"provider": {"model": "  "}},
    ],
)
def test_out_of_range_values_rejected(tmp_path: Path, no_global: Path, data: dict) -> None:
    _write_yaml(tmp_path / "aiss.yaml", data)
    with pytest.raises(ConfigError):
        load_config(project_dir=tmp_path, global_config_path=no_global)


def test_zero_rate_limit_means_unlimited_and_is_valid(tmp_path: Path, no_global: Path) -> None:
    _write_yaml(tmp_path / "aiss.yaml", {"rate_limit": {"global_per_minute": 0}})
    cfg = load_config(project_dir=tmp_path, global_config_path=no_global)
    assert cfg.rate_limit.global_per_minute == 0


# ---------------------------------------------------------------------------
# clamp_ttl + starter file
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "ttl,expected", [(0, 60), (59, 60), (60, 60), (3600, 3600), (86_400, 86_400), (10**9, 86_400)]
)
def test_clamp_ttl(ttl: int, expected: int) -> None:
    assert clamp_ttl(ttl) == expected


@pytest.mark.parametrize(
    "ttl,min_ttl,max_ttl,expected",
    [(0, 0, 100, 60), (5, 0, 0, 60), (10**9, 60, 10**9, 86_400), (300, 120, 600, 300)],
)
def test_clamp_ttl_keeps_bounds_inside_hard_limits(
    ttl: int, min_ttl: int, max_ttl: int, expected: int
) -> None:
    assert clamp_ttl(ttl, min_ttl, max_ttl) == expected


def test_write_project_config_loads_back(tmp_path: Path, no_global: Path) -> None:
    path = write_project_config(tmp_path, site_name='EV "Times": news')
    assert path.name == "aiss.yaml"
    cfg = load_config(project_dir=tmp_path, global_config_path=no_global)
    assert cfg.site.name == 'EV "Times": news'
    assert cfg.search.max_documents == 6


def test_write_project_config_keeps_existing(tmp_path: Path) -> None:
    (tmp_path / "aiss.yaml").write_text("site:\n  name: mine\n", encoding="utf-8")
    write_project_config(tmp_path, site_name="other")
    assert "mine" in (tmp_path / "aiss.yaml").read_text(encoding="utf-8")
