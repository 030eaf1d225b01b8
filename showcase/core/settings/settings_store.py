"""Runtime settings stored in the ``app_settings`` table.

Values are JSON. Holds the Slack webhook, which Slack events are enabled,
and the default branding applied to magic links.
"""

import logging
import re
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..constants import (
    DEFAULT_BRANDING,
    SETTING_DEFAULT_BRANDING,
    SETTING_SLACK_EVENTS,
    SETTING_SLACK_WEBHOOK,
    SLACK_EVENTS,
)
from ..db.models import AppSetting
from ..exceptions import ValidationError
from ..utils import utcnow

logger = logging.getLogger(__name__)

_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")
_BRANDING_TEXT_MAX = 500


class SettingsStore:
    """Key/value access to ``app_settings`` on a caller-provided session."""

    def __init__(self, db_session: Session):
        self._session = db_session

    def get(self, key: str, default: Any = None) -> Any:
        row = self._session.query(AppSetting).filter(AppSetting.setting_key == key).first()
        if row is None or row.setting_value is None:
            return default
        return row.setting_value

    def set(self, key: str, value: Any, description: Optional[str] = None) -> None:
        row = self._session.query(AppSetting).filter(AppSetting.setting_key == key).first()
        if row is None:
            row = AppSetting(setting_key=key, description=description)
            self._session.add(row)
        row.setting_value = value
        if description is not None:
            row.description = description
        row.updated_at = utcnow()
        self._session.flush()

    # ── Slack ────────────────────────────────────────────────────────────

    def get_slack_webhook(self) -> str:
        return self.get(SETTING_SLACK_WEBHOOK, "") or ""

    def get_slack_events(self) -> Dict[str, bool]:
        """Enabled flag per event; events never configured default to on.

        A stored list is read as the set of enabled events.
        """
        stored = self.get(SETTING_SLACK_EVENTS)
        if isinstance(stored, list):
            return {event: event in stored for event in SLACK_EVENTS}
        if isinstance(stored, dict):
            return {event: bool(stored.get(event, True)) for event in SLACK_EVENTS}
        return {event: True for event in SLACK_EVENTS}

    def get_slack_config(self) -> Dict[str, Any]:
        return {"webhook_url": self.get_slack_webhook(), "events": self.get_slack_events()}

    def set_slack_config(self, webhook_url: Optional[str], events: Optional[Dict[str, bool]]) -> Dict[str, Any]:
        webhook_url = validate_webhook_url(webhook_url)
        self.set(SETTING_SLACK_WEBHOOK, webhook_url, "Slack incoming webhook URL")

        if events is not None:
            unknown = sorted(set(events) - set(SLACK_EVENTS))
            if unknown:
                raise ValidationError(f"Unknown Slack events: {', '.join(unknown)}")
            current = self.get_slack_events()
            current.update({k: bool(v) for k, v in events.items()})
            self.set(SETTING_SLACK_EVENTS, current, "Slack notification toggles")

        logger.info(f"Slack settings updated (webhook {'set' if webhook_url else 'cleared'})")
        return self.get_slack_config()

    # ── Branding ─────────────────────────────────────────────────────────

    def get_default_branding(self) -> Dict[str, Any]:
        stored = self.get(SETTING_DEFAULT_BRANDING) or {}
        branding = dict(DEFAULT_BRANDING)
        branding.update({k: v for k, v in stored.items() if k in DEFAULT_BRANDING})
        return branding

    def set_default_branding(self, values: Dict[str, Any]) -> Dict[str, Any]:
        branding = self.get_default_branding()
        branding.update(validate_branding(values))
        self.set(SETTING_DEFAULT_BRANDING, branding, "Default magic link branding")
        logger.info("Default branding updated")
        return branding

    def effective_branding(self, link_branding: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Default branding overlaid with a link's own branding."""
        branding = self.get_default_branding()
        for key, value in (link_branding or {}).items():
            if key in DEFAULT_BRANDING and value is not None:
                branding[key] = value
        return branding


def validate_webhook_url(webhook_url: Optional[str]) -> str:
    webhook_url = (webhook_url or "").strip()
    if webhook_url and not webhook_url.startswith("https://"):
        raise ValidationError("Webhook URL must start with https://")
    return webhook_url


def validate_branding(values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Keep known branding keys and check their types."""
    cleaned: Dict[str, Any] = {}
    for key, value in (values or {}).items():
        if key not in DEFAULT_BRANDING or value is None:
            continue
        if key in ("header_text", "footer_text"):
            if not isinstance(value, str):
                raise ValidationError(f"{key} must be a string")
            cleaned[key] = value.strip()[:_BRANDING_TEXT_MAX]
        elif key == "primary_color":
            if not isinstance(value, str) or not _COLOR_RE.match(value):
                raise ValidationError("primary_color must be a hex color like #0070c0")
            cleaned[key] = value.lower()
        elif key == "hide_default_branding":
            cleaned[key] = bool(value)
    return cleaned
