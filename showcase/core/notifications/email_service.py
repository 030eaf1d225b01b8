"""Outgoing email over SMTP.

When no SMTP host is configured the message is logged instead of sent,
so invite and share URLs stay usable in development.
"""

import html
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from ..config import SMTPSettings

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 10
APP_NAME = "Prototype Showcase"


class EmailService:
    """Sends invite, share and access-review emails."""

    def __init__(self, smtp: Optional[SMTPSettings] = None, invite_expiry_days: int = 7):
        self.smtp = smtp or SMTPSettings()
        self.invite_expiry_days = invite_expiry_days

    @property
    def enabled(self) -> bool:
        return bool(self.smtp.host)

    # ── Messages ─────────────────────────────────────────────────────────

    def send_invite(self, email: str, invite_url: str) -> bool:
        body = (
            f"<h2>Welcome to {APP_NAME}</h2>"
            f"<p>You have been invited to join {APP_NAME}.</p>"
            "<p>Click the link below to set up your account:</p>"
            f'<p><a href="{html.escape(invite_url)}">{html.escape(invite_url)}</a></p>'
            f"<p>This link will expire in {self.invite_expiry_days} days.</p>"
        )
        return self._send(
            email,
            f"You are invited to {APP_NAME}",
            body,
            log_line=f"Invite URL for {email}: {invite_url}",
        )

    def send_link_shared(
        self,
        email: str,
        share_url: str,
        title: str,
        sender_name: Optional[str] = None,
        expires_at: Optional[str] = None,
    ) -> bool:
        sender = html.escape(sender_name or "The prototype team")
        expiry = f"<p>This link expires on {html.escape(expires_at)}.</p>" if expires_at else ""
        body = (
            f"<h2>{html.escape(title)}</h2>"
            f"<p>{sender} shared a prototype with you.</p>"
            f'<p><a href="{html.escape(share_url)}">Open the prototype</a></p>'
            f"{expiry}"
        )
        return self._send(
            email,
            f"Prototype shared with you: {title}",
            body,
            log_line=f"Share URL for {email}: {share_url}",
        )

    def send_access_approved(self, email: str, name: str, title: str, viewer_url: str) -> bool:
        body = (
            "<h2>Access Approved</h2>"
            f"<p>Hi {html.escape(name)},</p>"
            f"<p>Your access to the <strong>{html.escape(title)}</strong> prototype has been approved.</p>"
            "<p>You can now view the prototype by clicking the link below:</p>"
            f'<p><a href="{html.escape(viewer_url)}">View Prototype</a></p>'
            "<p>If you have any questions, please contact the prototype team.</p>"
        )
        return self._send(
            email,
            f"Access Approved: {title}",
            body,
            log_line=f"Access approved email for {email}: {title}. Viewer URL: {viewer_url}",
        )

    def send_access_denied(self, email: str, name: str, title: str) -> bool:
        body = (
            "<h2>Access Request Update</h2>"
            f"<p>Hi {html.escape(name)},</p>"
            f"<p>Your access request for the <strong>{html.escape(title)}</strong> prototype has been denied.</p>"
            "<p>If you believe this is in error or would like to discuss this decision, "
            "please contact the prototype team.</p>"
        )
        return self._send(
            email,
            f"Access Request: {title}",
            body,
            log_line=f"Access denied email for {email}: {title}",
        )

    # ── Transport ────────────────────────────────────────────────────────

    def _send(self, to: str, subject: str, html_body: str, log_line: str) -> bool:
        if not self.enabled:
            logger.info(log_line)
            return True

        message = EmailMessage()
        message["From"] = self.smtp.from_address
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML-capable mail client.")
        message.add_alternative(html_body, subtype="html")

        try:
            if self.smtp.port == 465:
                server = smtplib.SMTP_SSL(self.smtp.host, self.smtp.port, timeout=SMTP_TIMEOUT_SECONDS)
            else:
                server = smtplib.SMTP(self.smtp.host, self.smtp.port, timeout=SMTP_TIMEOUT_SECONDS)
            with server:
                if self.smtp.port != 465:
                    server.starttls()
                if self.smtp.user:
                    server.login(self.smtp.user, self.smtp.password or "")
                server.send_message(message)
            logger.info(f"Sent email '{subject}' to {to}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email '{subject}' to {to}: {e}")
            return False
