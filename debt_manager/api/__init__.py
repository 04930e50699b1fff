"""HTTP API package."""

from debt_manager.api.server import app, create_app, get_audit_logger, get_mail_relay

__all__ = [
    "app",
    "create_app",
    "get_audit_logger",
    "get_mail_relay",
]
