"""Tests for configuration loading.

Tests cover:
- Built-in defaults when no config file exists
- YAML file values and environment overrides
- Effective rate limits per environment
"""

import pytest

from showcase.core.config import ShowcaseSettings, get_settings, reload_configs
from showcase.core.config.config_loader import _ENV_OVERRIDES


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Empty config directory and a clean environment."""
    for name in _ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SHOWCASE_CONFIG_DIR", str(tmp_path))
    reload_configs()
    yield tmp_path
    reload_configs()


class TestLoading:

    def test_defaults(self, config_dir):
        settings = get_settings()

        assert settings.environment == "development"
        assert settings.max_upload_size_mb == 50
        assert settings.smtp.host is None

    def test_yaml_file(self, config_dir):
        (config_dir / "showcase.yaml").write_text(
            "environment: production\n"
            "client_url: https://showcase.acme.com\n"
            "smtp:\n"
            "  host: mail.acme.com\n"
            "  port: 465\n"
        )
        reload_configs()
        settings = get_settings()

        assert settings.is_production
        assert settings.client_url == "https://showcase.acme.com"
        assert settings.smtp.port == 465

    def test_env_overrides_yaml(self, config_dir, monkeypatch):
        (config_dir / "showcase.yaml").write_text("client_url: https://file.test\nsmtp:\n  port: 465\n")
        monkeypatch.setenv("CLIENT_URL", "https://env.test")
        monkeypatch.setenv("CORS_ORIGINS", "https://a.test, https://b.test")
        monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
        monkeypatch.setenv("SMTP_HOST", "smtp.env.test")
        reload_configs()
        settings = get_settings()

        assert settings.client_url == "https://env.test"
        assert settings.cors_origins == ["https://a.test", "https://b.test"]
        assert settings.rate_limit_enabled is False
        assert settings.smtp.host == "smtp.env.test"
        assert settings.smtp.port == 465

    def test_non_mapping_file_ignored(self, config_dir):
        (config_dir / "showcase.yaml").write_text("- just\n- a list\n")
        reload_configs()

        assert get_settings().environment == "development"


class TestRateLimits:

    def test_production_is_strict(self):
        settings = ShowcaseSettings(environment="production")

        assert settings.effective_auth_rate_limit == "10/15minutes"
        assert settings.effective_general_rate_limit == "100/15minutes"

    def test_development_is_lenient(self):
        assert ShowcaseSettings().effective_auth_rate_limit == "500/15minutes"

    def test_explicit_override(self):
        settings = ShowcaseSettings(environment="production", auth_rate_limit="3/minute")
        assert settings.effective_auth_rate_limit == "3/minute"
