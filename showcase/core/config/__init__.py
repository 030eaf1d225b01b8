"""Configuration: file/env settings and database-backed runtime settings."""

from .config_loader import (
    ShowcaseSettings,
    SMTPSettings,
    get_config_path,
    get_settings,
    load_unified_config,
    reload_configs,
)

__all__ = [
    "ShowcaseSettings",
    "SMTPSettings",
    "get_config_path",
    "get_settings",
    "load_unified_config",
    "reload_configs",
]
