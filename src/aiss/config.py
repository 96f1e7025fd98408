"""AI Search Summary configuration loader.

Priority (high → low):
  1. CLI flags               (handled at the call site)
  2. Environment variables   (AISS_MODEL, AISS_DB_PATH, AISS_ENABLED, AISS_LOG_LEVEL)
  3. Per-project aiss.yaml   (current working directory by default)
  4. Global ~/.aiss/config.yaml  (defaults only, no API keys)
  5. Hardcoded defaults

API keys are never read from config files; the provider key is taken from the
provider's environment variable (OPENAI_API_KEY, ANTHROPIC_API_KEY, ...).
All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import json
import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".aiss"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "aiss.yaml"

# Matches api_key, api-key, api_secret, *_token, token, *_secret, secret,
# password, credential(s). Does NOT match max_tokens or ttl.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["site", "provider", "cache", "rate_limit", "search", "storage", "logging"]
)

_TRUTHY = {"1", "true", "yes", "on"}

MIN_CACHE_TTL = 60
MAX_CACHE_TTL = 86_400
MAX_DOCUMENTS_LIMIT = 20


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class SiteCfg:
    """Site-level settings (aiss.yaml: site:).

    Attributes:
        name: Site name used in the system prompt.
        description: One-sentence description of what the site covers.
        enabled: Master switch; when False every summary request is
            answered with a not_configured error.
        trust_proxy: Take the client IP from the first X-Forwarded-For hop.
    """

    name: str = ""
    description: str = "a news and information website"
    enabled: bool = True
    trust_proxy: bool = False


@dataclass
class ProviderCfg:
    """Upstream LLM provider settings (aiss.yaml: provider:)."""

    model: str = "openai/gpt-4.1-mini"
    temperature: float = 0.2
    max_tokens: int = 1_500
    timeout: float = 30.0
    max_retries: int = 2
    api_base: str | None = None


@dataclass
class CacheCfg:
    """Answer cache TTL settings in seconds (aiss.yaml: cache:)."""

    ttl: int = 3_600
    min_ttl: int = MIN_CACHE_TTL
    max_ttl: int = MAX_CACHE_TTL


@dataclass
class RateLimitCfg:
    """Per-minute request budgets (aiss.yaml: rate_limit:).

    Attributes:
        global_per_minute: Provider calls per minute across all clients.
            0 disables the limit. Cache hits never consume this budget.
        per_ip_per_minute: Requests per minute from one client IP, cache
            hit or miss.
    """

    global_per_minute: int = 30
    per_ip_per_minute: int = 10


@dataclass
class SearchCfg:
    """Content selection settings (aiss.yaml: search:)."""

    max_documents: int = 6
    excerpt_chars: int = 300
    body_chars: int = 2_000


@dataclass
class StorageCfg:
    """Persistence settings (aiss.yaml: storage:)."""

    db_path: str = ".aiss.db"


@dataclass
class LoggingCfg:
    level: str = "INFO"


@dataclass
class AissConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    site: SiteCfg = field(default_factory=SiteCfg)
    provider: ProviderCfg = field(default_factory=ProviderCfg)
    cache: CacheCfg = field(default_factory=CacheCfg)
    rate_limit: RateLimitCfg = field(default_factory=RateLimitCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    storage: StorageCfg = field(default_factory=StorageCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export OPENAI_API_KEY=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def _validate(cfg: AissConfig) -> None:
    """Raise ConfigError for values the core cannot work with."""
    if not MIN_CACHE_TTL <= cfg.cache.min_ttl <= cfg.cache.max_ttl <= MAX_CACHE_TTL:
        raise ConfigError(
            f"cache.min_ttl ({cfg.cache.min_ttl}) and cache.max_ttl ({cfg.cache.max_ttl}) "
            f"must satisfy {MIN_CACHE_TTL} <= min_ttl <= max_ttl <= {MAX_CACHE_TTL}."
        )
    if cfg.rate_limit.global_per_minute < 0 or cfg.rate_limit.per_ip_per_minute < 0:
        raise ConfigError("rate_limit values must be 0 (unlimited) or positive.")
    if not 1 <= cfg.search.max_documents <= MAX_DOCUMENTS_LIMIT:
        raise ConfigError(
            f"search.max_documents must be between 1 and {MAX_DOCUMENTS_LIMIT}, "
            f"got {cfg.search.max_documents}."
        )
    if cfg.provider.max_retries < 0:
        raise ConfigError("provider.max_retries must not be negative.")
    if not cfg.provider.model.strip():
        raise ConfigError("provider.model must not be empty.")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> AissConfig:
    """Build an *AissConfig* from a merged raw YAML dict."""
    cfg = AissConfig()

    if "site" in data:
        s = data["site"] or {}
        cfg.site = SiteCfg(
            name=str(s.get("name", cfg.site.name)),
            description=str(s.get("description", cfg.site.description)),
            enabled=_as_bool(s.get("enabled", cfg.site.enabled)),
            trust_proxy=_as_bool(s.get("trust_proxy", cfg.site.trust_proxy)),
        )

    if "provider" in data:
        p = data["provider"] or {}
        cfg.provider = ProviderCfg(
            model=str(p.get("model", cfg.provider.model)),
            temperature=float(p.get("temperature", cfg.provider.temperature)),
            max_tokens=int(p.get("max_tokens", cfg.provider.max_tokens)),
            timeout=float(p.get("timeout", cfg.provider.timeout)),
            max_retries=int(p.get("max_retries", cfg.provider.max_retries)),
            api_base=p.get("api_base") or cfg.provider.api_base,
        )

    if "cache" in data:
        c = data["cache"] or {}
        cfg.cache = CacheCfg(
            ttl=int(c.get("ttl", cfg.cache.ttl)),
            min_ttl=int(c.get("min_ttl", cfg.cache.min_ttl)),
            max_ttl=int(c.get("max_ttl", cfg.cache.max_ttl)),
        )

    if "rate_limit" in data:
        r = data["rate_limit"] or {}
        cfg.rate_limit = RateLimitCfg(
            global_per_minute=int(
                r.get("global_per_minute", cfg.rate_limit.global_per_minute)
            ),
            per_ip_per_minute=int(
                r.get("per_ip_per_minute", cfg.rate_limit.per_ip_per_minute)
            ),
        )

    if "search" in data:
        se = data["search"] or {}
        cfg.search = SearchCfg(
            max_documents=int(se.get("max_documents", cfg.search.max_documents)),
            excerpt_chars=int(se.get("excerpt_chars", cfg.search.excerpt_chars)),
            body_chars=int(se.get("body_chars", cfg.search.body_chars)),
        )

    if "storage" in data:
        st = data["storage"] or {}
        cfg.storage = StorageCfg(db_path=str(st.get("db_path", cfg.storage.db_path)))

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(level=str(lg.get("level", cfg.logging.level)).upper())

    return cfg


def _apply_env_overrides(cfg: AissConfig) -> AissConfig:
    """Apply AISS_* environment variable overrides."""
    if model := os.environ.get("AISS_MODEL"):
        cfg.provider.model = model
    if db_path := os.environ.get("AISS_DB_PATH"):
        cfg.storage.db_path = db_path
    if (enabled := os.environ.get("AISS_ENABLED")) is not None:
        cfg.site.enabled = _as_bool(enabled)
    if level := os.environ.get("AISS_LOG_LEVEL"):
        cfg.logging.level = level.upper()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> AissConfig:
    """Load and return a merged *AissConfig*.

    Applies layers in order: global → per-project → env vars.

    Args:
        project_dir: Directory to search for *aiss.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If a config file contains API-key-like fields, is not a
            YAML mapping, or holds values outside their allowed range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    for path in (global_path, search_dir / _PROJECT_CONFIG_NAME):
        if not path.exists():
            continue
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Config '{path}' is not valid YAML: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Config '{path}' must contain a YAML mapping.")
        _check_no_api_keys(raw, path)
        _warn_unknown_keys(raw, path)
        merged = _deep_merge(merged, raw)

    try:
        cfg = _cfg_from_dict(merged)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg


def clamp_ttl(ttl: int, min_ttl: int = MIN_CACHE_TTL, max_ttl: int = MAX_CACHE_TTL) -> int:
    """Clamp a cache TTL into [min_ttl, max_ttl], itself kept inside [60, 86400]."""
    low = max(MIN_CACHE_TTL, min_ttl)
    high = max(low, min(MAX_CACHE_TTL, max_ttl))
    return max(low, min(high, int(ttl)))


def write_project_config(project_dir: Path, site_name: str = "") -> Path:
    """Write a starter *aiss.yaml* into *project_dir* if none exists.

    Returns:
        Path to the project config file.
    """
    target = project_dir / _PROJECT_CONFIG_NAME
    if not target.exists():
        content = (
            "# AI Search Summary project configuration.\n"
            "# NEVER store API keys here — use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "site:\n"
            f"  name: {json.dumps(site_name)}\n"
            "  enabled: true\n"
            "\n"
            "provider:\n"
            "  model: openai/gpt-4.1-mini\n"
            "\n"
            "cache:\n"
            "  ttl: 3600\n"
            "\n"
            "rate_limit:\n"
            "  global_per_minute: 30\n"
            "  per_ip_per_minute: 10\n"
            "\n"
            "search:\n"
            "  max_documents: 6\n"
        )
        target.write_text(content, encoding="utf-8")
    return target
