"""
Outbound Mail Relay over SMTP

DESIGN DECISION: The relay is stateless and holds no data.
- It turns (recipient, subject, body) into one SMTP submission
- The configured admin address, when set, overrides the caller's recipient
- The HTML alternative is the body with line breaks turned into <br>
- One attempt per request, bounded by a socket timeout; no retry, so the
  office never receives the same reminder twice

Port 465 uses implicit TLS. Any other port starts in plain text and
upgrades with STARTTLS when the server offers it.
"""

import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional

import structlog

from debt_manager.config import SmtpSettings, get_settings
from debt_manager.dispatch import render_email_html


logger = structlog.get_logger(__name__)

SENDER_DISPLAY_NAME = "מערכת ניהול חובות"

NOT_CONFIGURED_MESSAGE = (
    "SMTP not configured. Set SMTP_HOST, SMTP_USER, SMTP_PASS in environment variables."
)


class MailRelayError(Exception):
    """Base exception for mail relay errors."""
    pass


class MailNotConfiguredError(MailRelayError):
    """SMTP host, user or password is missing."""

    def __init__(self, message: str = NOT_CONFIGURED_MESSAGE):
        super().__init__(message)


class TransportError(MailRelayError):
    """The SMTP server could not be reached or refused the message."""
    pass


class SmtpMailRelay:
    """
    Sends a single e-mail through the configured SMTP server.

    Usage:
        relay = SmtpMailRelay()
        if relay.is_configured:
            relay.send("office@example.org", "Debt reminder", "Line 1\\nLine 2")
    """

    def __init__(self, settings: Optional[SmtpSettings] = None):
        self._settings = settings or get_settings().smtp

    @property
    def settings(self) -> SmtpSettings:
        return self._settings

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    @property
    def admin_email_set(self) -> bool:
        return bool(self._settings.admin_email)

    def resolve_recipient(self, to: Optional[str]) -> Optional[str]:
        """The admin address if configured, otherwise the caller's recipient."""
        return self._settings.admin_email or (to or None)

    def build_message(self, recipient: str, subject: str, body: str) -> EmailMessage:
        """Plain-text message with an HTML alternative."""
        message = EmailMessage()
        message["From"] = formataddr((SENDER_DISPLAY_NAME, self._settings.user))
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)
        message.add_alternative(render_email_html(body), subtype="html")
        return message

    def _connect(self) -> smtplib.SMTP:
        s = self._settings
        if s.use_implicit_tls:
            return smtplib.SMTP_SSL(
                s.host, s.port, timeout=s.timeout_seconds,
                context=ssl.create_default_context(),
            )
        return smtplib.SMTP(s.host, s.port, timeout=s.timeout_seconds)

    def send(self, recipient: str, subject: str, body: str) -> None:
        """
        Submit one message.

        Args:
            recipient: Final recipient (already resolved)
            subject: Subject line
            body: Plain-text body

        Raises:
            MailNotConfiguredError: If SMTP settings are incomplete
            TransportError: If the message cannot be built, or connecting,
                            authenticating or sending fails
        """
        if not self.is_configured:
            raise MailNotConfiguredError()

        try:
            message = self.build_message(recipient, subject, body)
            with self._connect() as server:
                if not self._settings.use_implicit_tls:
                    server.ehlo()
                    if server.has_extn("starttls"):
                        server.starttls(context=ssl.create_default_context())
                        server.ehlo()
                server.login(self._settings.user, self._settings.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError, ValueError) as e:
            logger.error("email_send_failed", recipient=recipient, error=str(e))
            raise TransportError(str(e) or e.__class__.__name__) from e

        logger.info("email_sent", recipient=recipient, subject=subject)
