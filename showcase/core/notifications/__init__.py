"""Email and Slack notifications."""

from .email_service import EmailService
from .slack_service import SlackService, format_message

__all__ = [
    "EmailService",
    "SlackService",
    "format_message",
]
