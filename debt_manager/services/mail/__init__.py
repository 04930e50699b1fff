"""Mail relay services package."""

from debt_manager.services.mail.smtp_relay import (
    NOT_CONFIGURED_MESSAGE,
    MailNotConfiguredError,
    MailRelayError,
    SmtpMailRelay,
    TransportError,
)

__all__ = [
    "NOT_CONFIGURED_MESSAGE",
    "MailNotConfiguredError",
    "MailRelayError",
    "SmtpMailRelay",
    "TransportError",
]
