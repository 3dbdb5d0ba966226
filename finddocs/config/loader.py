"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  -- static defaults and feature flags
  2. .env file           -- local overrides (not committed)
  3. Environment vars    -- deployment overrides

``load_config()`` reads the YAML file first, then deep-merges the values
resolved by :class:`Settings` on top.  Feature flags only live in YAML.
"""

from pathlib import Path
from typing import Any

import yaml

from finddocs.config.settings import Settings
from finddocs.utils.errors import ConfigurationError

DEFAULT_FEATURES: dict[str, bool] = {
    "batch_processing": True,
    "directory_upload": True,
    "chat_history": True,
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict[str, Any]:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Already-resolved settings; a fresh ``Settings()`` when omitted.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: If the YAML file cannot be parsed.
    """
    config_path = Path(path)
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(message=f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(message=f"{config_path} must contain a mapping at the top level")
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides: dict[str, Any] = {
        "app": {
            "env": settings.app_env,
        },
        "conversion": {
            "url": settings.docling_url,
            "timeout": settings.upload_timeout,
            "poll_interval": settings.poll_interval,
            "max_poll_attempts": settings.max_poll_attempts,
            "batch_pacing_delay": settings.batch_pacing_delay,
        },
        "generation": {
            "url": settings.ollama_url,
            "model": settings.ollama_model,
            "timeout": settings.generation_timeout,
        },
        "retrieval": {
            "max_context_length": settings.max_context_length,
            "max_results": settings.max_results,
            "history_pairs": settings.history_pairs,
        },
        "storage": {
            "primary_db_path": settings.primary_db_path,
            "overflow_db_path": settings.overflow_db_path,
            "primary_quota_chars": settings.primary_quota_chars,
            "overflow_threshold_chars": settings.overflow_threshold_chars,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    resolved: dict[str, Any] = {"features": dict(DEFAULT_FEATURES)}
    _deep_merge(resolved, yaml_config)
    _deep_merge(resolved, env_overrides)
    return resolved


def feature_enabled(config: dict[str, Any], name: str) -> bool:
    """Return the boolean value of feature flag *name* (default from DEFAULT_FEATURES)."""
    features = config.get("features") or {}
    return bool(features.get(name, DEFAULT_FEATURES.get(name, False)))


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
