"""Configuration loader for the prototype showcase.

Settings are layered: built-in defaults, then ``config/showcase.yaml``
(directory overridable via SHOWCASE_CONFIG_DIR), then environment
variables. The merged result is cached; call ``reload_configs()`` after
editing the file or environment.
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Values from a local .env fill in unset environment variables
load_dotenv()

CONFIG_FILENAME = "showcase.yaml"


class SMTPSettings(BaseModel):
    host: Optional[str] = None
    port: int = 587
    user: Optional[str] = None
    password: Optional[str] = None
    from_address: str = "noreply@showcase.local"


class ShowcaseSettings(BaseModel):
    """Merged application settings."""
    environment: str = Field("development", description="development or production")
    database_url: str = "sqlite:///showcase.sqlite3"
    secret_key: str = "showcase-dev-secret-change-me"
    client_url: str = "http://localhost:5173"
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"]
    )
    upload_dir: str = "uploads"
    max_upload_size_mb: int = 50
    session_max_age_hours: int = 24
    invite_expiry_days: int = 7
    rate_limit_enabled: bool = True
    auth_rate_limit: Optional[str] = None
    general_rate_limit: Optional[str] = None
    smtp: SMTPSettings = Field(default_factory=SMTPSettings)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def effective_auth_rate_limit(self) -> str:
        if self.auth_rate_limit:
            return self.auth_rate_limit
        return "10/15minutes" if self.is_production else "500/15minutes"

    @property
    def effective_general_rate_limit(self) -> str:
        if self.general_rate_limit:
            return self.general_rate_limit
        return "100/15minutes" if self.is_production else "500/15minutes"


# Environment variable -> dotted settings key
_ENV_OVERRIDES = {
    "SHOWCASE_ENV": "environment",
    "DATABASE_URL": "database_url",
    "SHOWCASE_SECRET_KEY": "secret_key",
    "CLIENT_URL": "client_url",
    "CORS_ORIGINS": "cors_origins",
    "UPLOAD_DIR": "upload_dir",
    "MAX_UPLOAD_SIZE_MB": "max_upload_size_mb",
    "SESSION_MAX_AGE_HOURS": "session_max_age_hours",
    "INVITE_EXPIRY_DAYS": "invite_expiry_days",
    "RATE_LIMIT_ENABLED": "rate_limit_enabled",
    "AUTH_RATE_LIMIT": "auth_rate_limit",
    "GENERAL_RATE_LIMIT": "general_rate_limit",
    "SMTP_HOST": "smtp.host",
    "SMTP_PORT": "smtp.port",
    "SMTP_USER": "smtp.user",
    "SMTP_PASS": "smtp.password",
    "SMTP_FROM": "smtp.from_address",
}


def get_config_path() -> Path:
    """Directory holding showcase.yaml."""
    return Path(os.getenv("SHOWCASE_CONFIG_DIR", "config"))


def _read_yaml_config() -> Dict[str, Any]:
    config_file = get_config_path() / CONFIG_FILENAME
    if not config_file.exists():
        return {}

    with open(config_file, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring {config_file}: top level must be a mapping")
        return {}
    return data


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, key in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue

        if key == "cors_origins":
            value = [o.strip() for o in value.split(",") if o.strip()]
        elif key == "rate_limit_enabled":
            value = value.lower() in ("1", "true", "yes")

        if "." in key:
            section, field = key.split(".", 1)
            config.setdefault(section, {})
            config[section][field] = value
        else:
            config[key] = value
    return config


@lru_cache(maxsize=1)
def load_unified_config() -> Dict[str, Any]:
    """Return the merged raw config dict (YAML + environment)."""
    config = _read_yaml_config()
    return _apply_env_overrides(config)


@lru_cache(maxsize=1)
def get_settings() -> ShowcaseSettings:
    """Return validated application settings."""
    return ShowcaseSettings(**load_unified_config())


def reload_configs() -> None:
    """Clear cached configuration so the next read picks up changes."""
    load_unified_config.cache_clear()
    get_settings.cache_clear()
