"""Slack incoming-webhook notifications.

Webhook URL and per-event toggles are read from ``app_settings`` on every
call, so changes made in the admin settings apply immediately.
"""

import logging
from typing import Any, Dict, Optional

import requests

from ..db import DatabaseManager
from ..settings import SettingsStore

logger = logging.getLogger(__name__)

SLACK_TIMEOUT_SECONDS = 5


def format_message(event: str, data: Dict[str, Any]) -> Optional[str]:
    """Message text for ``event``, or None for events we don't announce."""
    title = data.get("prototype_title", "")
    if event == "view":
        return f"Prototype '{title}' was viewed via link '{data.get('link_label', '')}'"
    if event == "feedback":
        rating = data.get("rating")
        lead = f"New {rating}-star feedback" if rating else "New feedback"
        return f"{lead} on '{title}': '{data.get('comment', '')}' — {data.get('email') or 'anonymous'}"
    if event == "access_request":
        return f"Access requested for '{title}' by {data.get('name', '')} ({data.get('email', '')})"
    if event == "access_approved":
        return f"Access approved for {data.get('name', '')} to '{title}'"
    if event == "access_denied":
        return f"Access denied for {data.get('name', '')} to '{title}'"
    return None


class SlackService:
    """Posts event notifications to the configured Slack webhook."""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def notify(self, event: str, data: Dict[str, Any]) -> bool:
        """Send ``event`` if a webhook is set and the event is enabled.

        Never raises; returns True only when a message was posted.
        """
        try:
            with self.db.get_session() as session:
                store = SettingsStore(session)
                webhook_url = store.get_slack_webhook()
                events = store.get_slack_events()
        except Exception as e:
            logger.warning(f"Could not read Slack settings: {e}")
            return False

        if not webhook_url:
            return False
        if not events.get(event, False):
            logger.debug(f"Slack event '{event}' disabled; skipping")
            return False

        text = format_message(event, data)
        if text is None:
            return False
        return self.post(webhook_url, text)

    def send_test(self, webhook_url: str) -> None:
        """Post a test message; raises ``requests.RequestException`` on failure."""
        response = requests.post(
            webhook_url,
            json={"text": "Test notification from Prototype Showcase", "mrkdwn": True},
            timeout=SLACK_TIMEOUT_SECONDS,
        )
        response.raise_for_status()

    @staticmethod
    def post(webhook_url: str, text: str) -> bool:
        try:
            response = requests.post(
                webhook_url,
                json={"text": text, "mrkdwn": True},
                timeout=SLACK_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            return True
        except requests.RequestException as e:
            logger.error(f"Error sending Slack notification: {e}")
            return False
