"""Runtime-editable settings (Slack, default branding)."""

from .settings_store import SettingsStore, validate_branding, validate_webhook_url

__all__ = [
    "SettingsStore",
    "validate_branding",
    "validate_webhook_url",
]
