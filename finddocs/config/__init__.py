"""Configuration module -- exports Settings and the YAML/env config loader."""

from finddocs.config.loader import feature_enabled, load_config
from finddocs.config.settings import Settings

__all__ = ["Settings", "feature_enabled", "load_config"]
